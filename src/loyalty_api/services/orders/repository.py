"""Order storage: the repository contract plus SQLAlchemy and in-memory adapters."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_api.domain.orders import Accrual, Order, OrderInfo, OrderStatus
from loyalty_api.models.order import OrderAccrualRecord, OrderRecord

from .errors import (
    DuplicateSameOwner,
    IdentityMismatch,
    OrderConflictError,
    OwnerMismatch,
    StorageError,
)


class OrderRepository(ABC):
    """Durable owner of orders. Every write is all-or-nothing."""

    @abstractmethod
    async def save_order(self, order: Order) -> None:
        """Persist a new order together with its accrual.

        Raises ``OrderConflictError`` when a purchase number is already taken
        (``OwnerMismatch`` or ``DuplicateSameOwner``) or storage does not echo
        the written id (``IdentityMismatch``); ``StorageError`` otherwise.
        """

    @abstractmethod
    async def order_by_number(self, number: int) -> Order | None:
        """Return the purchase order registered under ``number``."""

    @abstractmethod
    async def orders_by_statuses(self, user_id: UUID, statuses: Sequence[OrderStatus]) -> list[Order]:
        """Return a user's orders in the given statuses, oldest upload first."""

    @abstractmethod
    async def orders_batch(self, statuses: Sequence[OrderStatus]) -> list[Order]:
        """Return every user's orders in the given statuses."""

    @abstractmethod
    async def orders_update(self, orders: Sequence[Order]) -> None:
        """Replace the info of all given orders in one atomic write."""


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo; timestamps are always written in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_domain(record: OrderRecord, amount_minor: int | None) -> Order:
    return Order(
        id=record.id,
        user_id=record.user_id,
        info=OrderInfo(
            number=int(record.number),
            status=record.status,
            accrual=Accrual(int(amount_minor)) if amount_minor is not None else None,
            uploaded_at=_aware(record.uploaded_at),
        ),
    )


class SqlAlchemyOrderRepository(OrderRepository):
    """Repository backed by the ``orders`` and ``order_accruals`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, log=None) -> None:
        self._session_factory = session_factory
        self._log = log or logger.bind(component="order_repository")

    async def save_order(self, order: Order) -> None:
        info = order.info
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        OrderRecord(
                            id=order.id,
                            user_id=order.user_id,
                            number=info.number,
                            status=info.status,
                            uploaded_at=info.uploaded_at,
                        )
                    )
                    await session.flush()
                    if info.accrual is not None:
                        session.add(OrderAccrualRecord(order_id=order.id, amount_minor=info.accrual.minor_units))
                    if not order.is_withdrawal:
                        stored_id = await session.scalar(self._purchase_id_stmt(info.number))
                        if stored_id != order.id:
                            raise OrderConflictError(
                                IdentityMismatch(expected_order_id=order.id, actual_order_id=stored_id),
                                number=info.number,
                            )
        except IntegrityError as exc:
            await self._raise_number_conflict(order, exc)
        except (OverflowError, SQLAlchemyError) as exc:
            raise StorageError(f"Failed to save order {info.number}") from exc

        self._log.debug(
            "Order saved",
            order_id=str(order.id),
            user_id=str(order.user_id),
            number=info.number,
            status=info.status.value,
        )

    async def _raise_number_conflict(self, order: Order, exc: IntegrityError) -> None:
        if order.is_withdrawal:
            raise StorageError(f"Failed to save withdrawal {order.number}") from exc

        existing = await self.order_by_number(order.number)
        if existing is None:
            raise StorageError(f"Failed to save order {order.number}") from exc
        if existing.user_id != order.user_id:
            raise OrderConflictError(OwnerMismatch(existing.id), number=order.number) from exc
        raise OrderConflictError(DuplicateSameOwner(existing.id), number=order.number) from exc

    @staticmethod
    def _purchase_id_stmt(number: int):
        return select(OrderRecord.id).where(
            OrderRecord.number == number,
            OrderRecord.status != OrderStatus.WITHDRAW,
        )

    @staticmethod
    def _orders_stmt():
        return select(OrderRecord, OrderAccrualRecord.amount_minor).outerjoin(
            OrderAccrualRecord, OrderAccrualRecord.order_id == OrderRecord.id
        )

    async def _fetch(self, stmt) -> list[Order]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_to_domain(record, amount) for record, amount in result.all()]
        except SQLAlchemyError as exc:
            raise StorageError("Failed to read orders") from exc

    async def order_by_number(self, number: int) -> Order | None:
        stmt = self._orders_stmt().where(
            OrderRecord.number == number,
            OrderRecord.status != OrderStatus.WITHDRAW,
        )
        orders = await self._fetch(stmt)
        return orders[0] if orders else None

    async def orders_by_statuses(self, user_id: UUID, statuses: Sequence[OrderStatus]) -> list[Order]:
        stmt = (
            self._orders_stmt()
            .where(OrderRecord.user_id == user_id, OrderRecord.status.in_(list(statuses)))
            .order_by(OrderRecord.uploaded_at)
        )
        return await self._fetch(stmt)

    async def orders_batch(self, statuses: Sequence[OrderStatus]) -> list[Order]:
        stmt = (
            self._orders_stmt()
            .where(OrderRecord.status.in_(list(statuses)))
            .order_by(OrderRecord.uploaded_at)
        )
        return await self._fetch(stmt)

    async def orders_update(self, orders: Sequence[Order]) -> None:
        if not orders:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for order in orders:
                        await self._apply_info(session, order)
        except (OverflowError, SQLAlchemyError) as exc:
            raise StorageError(f"Failed to update {len(orders)} orders") from exc

        self._log.debug("Orders updated", count=len(orders))

    @staticmethod
    async def _apply_info(session: AsyncSession, order: Order) -> None:
        record = await session.get(OrderRecord, order.id)
        if record is None:
            raise StorageError(f"Order {order.id} disappeared before update")

        info = order.info
        record.status = info.status
        record.uploaded_at = info.uploaded_at

        if info.accrual is None:
            await session.execute(delete(OrderAccrualRecord).where(OrderAccrualRecord.order_id == order.id))
            return

        accrual_record = await session.get(OrderAccrualRecord, order.id)
        if accrual_record is None:
            session.add(OrderAccrualRecord(order_id=order.id, amount_minor=info.accrual.minor_units))
        else:
            accrual_record.amount_minor = info.accrual.minor_units


class InMemoryOrderRepository(OrderRepository):
    """Process-local repository with the same conflict semantics as the SQL one."""

    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self._orders: dict[UUID, Order] = {}
        self._lock = asyncio.Lock()
        for order in orders:
            self._orders[order.id] = self._copy(order)

    @staticmethod
    def _copy(order: Order) -> Order:
        return Order(id=order.id, user_id=order.user_id, info=order.info)

    def _purchase_by_number(self, number: int) -> Order | None:
        for order in self._orders.values():
            if order.number == number and not order.is_withdrawal:
                return order
        return None

    async def save_order(self, order: Order) -> None:
        async with self._lock:
            if order.id in self._orders:
                raise StorageError(f"Order id {order.id} already stored")
            if not order.is_withdrawal:
                existing = self._purchase_by_number(order.number)
                if existing is not None:
                    if existing.user_id != order.user_id:
                        raise OrderConflictError(OwnerMismatch(existing.id), number=order.number)
                    raise OrderConflictError(DuplicateSameOwner(existing.id), number=order.number)
            self._orders[order.id] = self._copy(order)

    async def order_by_number(self, number: int) -> Order | None:
        async with self._lock:
            existing = self._purchase_by_number(number)
            return self._copy(existing) if existing else None

    async def orders_by_statuses(self, user_id: UUID, statuses: Sequence[OrderStatus]) -> list[Order]:
        wanted = set(statuses)
        async with self._lock:
            matches = [
                self._copy(order)
                for order in self._orders.values()
                if order.user_id == user_id and order.status in wanted
            ]
        return sorted(matches, key=lambda order: order.info.uploaded_at)

    async def orders_batch(self, statuses: Sequence[OrderStatus]) -> list[Order]:
        wanted = set(statuses)
        async with self._lock:
            matches = [self._copy(order) for order in self._orders.values() if order.status in wanted]
        return sorted(matches, key=lambda order: order.info.uploaded_at)

    async def orders_update(self, orders: Sequence[Order]) -> None:
        async with self._lock:
            missing = [order.id for order in orders if order.id not in self._orders]
            if missing:
                raise StorageError(f"Orders disappeared before update: {missing}")
            for order in orders:
                self._orders[order.id].replace_info(order.info)

    def all_orders(self) -> list[Order]:
        return [self._copy(order) for order in self._orders.values()]


__all__ = [
    "InMemoryOrderRepository",
    "OrderRepository",
    "SqlAlchemyOrderRepository",
]
