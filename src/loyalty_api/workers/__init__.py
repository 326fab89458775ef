"""Background workers supporting async processing."""

from .accrual_reconciler import AccrualReconciler, ReconcileCycleResult, ReconcilerState

__all__ = [
    "AccrualReconciler",
    "ReconcileCycleResult",
    "ReconcilerState",
]
