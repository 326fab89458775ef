"""Balance derivation from a user's terminal orders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from loguru import logger

from .accrual import Accrual
from .entities import Order
from .status import OrderStatus


@dataclass(frozen=True, slots=True)
class Balance:
    """Derived balance: ``current`` is spendable, ``withdrawn`` is the lifetime total."""

    current: Accrual
    withdrawn: Accrual

    @classmethod
    def empty(cls) -> "Balance":
        return cls(current=Accrual.zero(), withdrawn=Accrual.zero())

    def shortfall(self, requested: Accrual) -> Accrual:
        """Return how much ``requested`` exceeds the spendable balance (zero if affordable)."""

        if requested <= self.current:
            return Accrual.zero()
        return requested - self.current


def compute_balance(orders: Iterable[Order], *, log=None) -> Balance:
    """Sum processed accruals and withdrawals into a balance.

    Orders outside PROCESSED/WITHDRAW are ignored. A ledger order without an
    accrual contributes zero and is reported as an integrity problem.
    """

    log = log or logger.bind(component="balance")
    earned = Accrual.zero()
    withdrawn = Accrual.zero()

    for order in orders:
        status = order.info.status
        if status not in (OrderStatus.PROCESSED, OrderStatus.WITHDRAW):
            continue
        accrual = order.info.accrual
        if accrual is None:
            log.warning(
                "Ledger order has no accrual amount",
                order_id=str(order.id),
                user_id=str(order.user_id),
                status=status.value,
            )
            continue
        if status is OrderStatus.PROCESSED:
            earned = earned + accrual
        else:
            withdrawn = withdrawn + accrual

    return Balance(current=earned - withdrawn, withdrawn=withdrawn)


__all__ = ["Balance", "compute_balance"]
