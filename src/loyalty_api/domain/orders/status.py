"""Order lifecycle statuses and the transitions allowed between them."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    NEW = "NEW"
    REGISTERED = "REGISTERED"
    PROCESSING = "PROCESSING"
    INVALID = "INVALID"
    PROCESSED = "PROCESSED"
    WITHDRAW = "WITHDRAW"

    @classmethod
    def parse(cls, value: str) -> "OrderStatus":
        """Resolve a wire status name; raises ``ValueError`` for unknown names."""

        normalized = (value or "").strip().upper()
        if normalized == "WITHDRAWAL":
            return cls.WITHDRAW
        return cls(normalized)

    def normalize(self) -> "OrderStatus":
        # REGISTERED is observationally identical to NEW for this service.
        if self is OrderStatus.REGISTERED:
            return OrderStatus.NEW
        return self

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "OrderStatus") -> bool:
        source = self.normalize()
        return target.normalize() in _ALLOWED_TRANSITIONS.get(source, frozenset())


TERMINAL_STATUSES = frozenset({OrderStatus.INVALID, OrderStatus.PROCESSED, OrderStatus.WITHDRAW})

# Statuses the reconciler keeps polling the accrual source for.
PENDING_STATUSES = (OrderStatus.NEW, OrderStatus.PROCESSING)

# Statuses that feed the derived balance.
LEDGER_STATUSES = (OrderStatus.PROCESSED, OrderStatus.WITHDRAW)

# Purchase-order statuses shown to members.
PURCHASE_STATUSES = (
    OrderStatus.NEW,
    OrderStatus.PROCESSING,
    OrderStatus.INVALID,
    OrderStatus.PROCESSED,
)

_ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.PROCESSING, OrderStatus.INVALID, OrderStatus.PROCESSED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.INVALID, OrderStatus.PROCESSED}),
    OrderStatus.INVALID: frozenset(),
    OrderStatus.PROCESSED: frozenset(),
    OrderStatus.WITHDRAW: frozenset(),
}


__all__ = [
    "LEDGER_STATUSES",
    "OrderStatus",
    "PENDING_STATUSES",
    "PURCHASE_STATUSES",
    "TERMINAL_STATUSES",
]
