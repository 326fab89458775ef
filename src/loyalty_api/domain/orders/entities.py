"""Order entity and its replaceable info value."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from .accrual import Accrual
from .status import OrderStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class OrderInfo:
    """Number, status, accrual and upload time of an order.

    ``accrual`` is ``None`` until the accrual source reports a value.
    """

    number: int
    status: OrderStatus
    accrual: Accrual | None = None
    uploaded_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, number: int, status: OrderStatus, accrual: Accrual | None = None) -> "OrderInfo":
        return cls(number=number, status=status.normalize(), accrual=accrual, uploaded_at=_utcnow())


@dataclass(slots=True)
class Order:
    """A purchase order or a synthetic withdrawal owned by a single user."""

    id: UUID
    user_id: UUID
    info: OrderInfo

    @classmethod
    def create(cls, user_id: UUID, info: OrderInfo) -> "Order":
        return cls(id=uuid4(), user_id=user_id, info=info)

    @classmethod
    def withdrawal(cls, user_id: UUID, number: int, amount: Accrual) -> "Order":
        return cls.create(user_id, OrderInfo.new(number, OrderStatus.WITHDRAW, amount))

    @property
    def number(self) -> int:
        return self.info.number

    @property
    def status(self) -> OrderStatus:
        return self.info.status

    @property
    def is_withdrawal(self) -> bool:
        return self.info.status is OrderStatus.WITHDRAW

    def replace_info(self, info: OrderInfo) -> None:
        self.info = info


__all__ = ["Order", "OrderInfo"]
