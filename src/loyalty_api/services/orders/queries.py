"""Read-side queries over a member's orders."""

from __future__ import annotations

from uuid import UUID

from loguru import logger

from loyalty_api.domain.orders import (
    LEDGER_STATUSES,
    PURCHASE_STATUSES,
    Balance,
    Order,
    OrderStatus,
    compute_balance,
)

from .repository import OrderRepository


class OrderQueryService:
    def __init__(self, repository: OrderRepository, *, log=None) -> None:
        self._repository = repository
        self._log = log or logger.bind(component="order_queries")

    async def list_orders(self, user_id: UUID) -> list[Order]:
        return await self._repository.orders_by_statuses(user_id, PURCHASE_STATUSES)

    async def list_withdrawals(self, user_id: UUID) -> list[Order]:
        return await self._repository.orders_by_statuses(user_id, (OrderStatus.WITHDRAW,))

    async def get_balance(self, user_id: UUID) -> Balance:
        """Recompute the balance from the user's processed orders and withdrawals."""

        orders = await self._repository.orders_by_statuses(user_id, LEDGER_STATUSES)
        return compute_balance(orders, log=self._log)


__all__ = ["OrderQueryService"]
