"""In-process accrual source for local runs without the accrual system."""

from __future__ import annotations

import random
from decimal import Decimal

from loyalty_api.domain.orders import Accrual, OrderInfo, OrderStatus

from .client import AccrualSource

_REPORTED_STATUSES = (
    OrderStatus.REGISTERED,
    OrderStatus.PROCESSING,
    OrderStatus.INVALID,
    OrderStatus.PROCESSED,
)


class FakeAccrualSource(AccrualSource):
    """Reports a random lifecycle status; only PROCESSED carries an accrual."""

    def __init__(self, *, seed: int | None = None, max_accrual: int = 100) -> None:
        self._random = random.Random(seed)
        self._max_accrual = max_accrual

    async def load(self, number: int) -> OrderInfo:
        status = self._random.choice(_REPORTED_STATUSES)
        accrual = None
        if status is OrderStatus.PROCESSED:
            cents = self._random.randint(100, self._max_accrual * 100)
            accrual = Accrual.from_decimal(Decimal(cents) / 100)
        return OrderInfo.new(number, status.normalize(), accrual)


__all__ = ["FakeAccrualSource"]
