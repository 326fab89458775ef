"""Order intake and withdrawal requests."""

from __future__ import annotations

import asyncio
import weakref
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from loguru import logger

from loyalty_api.domain.orders import (
    LEDGER_STATUSES,
    Accrual,
    Order,
    compute_balance,
    has_cent_precision,
    is_valid_number,
    parse_number,
)
from loyalty_api.services.accrual import AccrualSource

from .errors import (
    DuplicateSameOwner,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidNumberError,
    MalformedNumberError,
    OrderConflictError,
    OwnerMismatch,
    StorageError,
)
from .repository import OrderRepository


class LoadOrderOutcome(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_EXISTS = "already_exists"


def _validated_number(number_text: str) -> int:
    try:
        number = parse_number(number_text)
    except ValueError as exc:
        raise MalformedNumberError(number_text) from exc
    if not is_valid_number(number):
        raise InvalidNumberError(number)
    return number


def _validated_amount(amount: Decimal | float | int | str) -> Accrual:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(amount) from exc
    if not has_cent_precision(value) or value <= 0:
        raise InvalidAmountError(amount)
    try:
        return Accrual.from_decimal(value)
    except ValueError as exc:
        raise InvalidAmountError(amount) from exc


class OrderSubmissionService:
    """Registers purchase orders and books withdrawals against the derived balance."""

    def __init__(self, repository: OrderRepository, accrual_source: AccrualSource, *, log=None) -> None:
        self._repository = repository
        self._accrual_source = accrual_source
        self._log = log or logger.bind(component="order_submission")
        self._withdraw_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    async def load_order(self, user_id: UUID, number_text: str) -> LoadOrderOutcome:
        """Validate ``number_text`` and register it for ``user_id``.

        Returns ``ALREADY_EXISTS`` when the user had registered the number
        before; raises ``OrderConflictError`` when another user owns it.
        ``RetryableSourceError`` from the accrual source propagates unchanged.
        """

        number = _validated_number(number_text)
        info = await self._accrual_source.load(number)
        order = Order.create(user_id, info)

        try:
            await self._repository.save_order(order)
        except OrderConflictError as exc:
            if isinstance(exc.conflict, DuplicateSameOwner):
                self._log.debug("Order already registered by user", user_id=str(user_id), number=number)
                return LoadOrderOutcome.ALREADY_EXISTS
            if isinstance(exc.conflict, OwnerMismatch):
                self._log.info(
                    "Order number owned by another user",
                    user_id=str(user_id),
                    number=number,
                    existing_order_id=str(exc.conflict.existing_order_id),
                )
                raise
            self._log.error("Order identity mismatch on save", user_id=str(user_id), number=number)
            raise StorageError(f"Order {number} was not stored as written") from exc

        self._log.info(
            "Order registered",
            order_id=str(order.id),
            user_id=str(user_id),
            number=number,
            status=info.status.value,
        )
        return LoadOrderOutcome.ACCEPTED

    async def withdraw(self, user_id: UUID, number_text: str, amount: Decimal | float | int | str) -> Order:
        """Book a withdrawal of ``amount`` points referencing ``number_text``."""

        number = _validated_number(number_text)
        order = Order.withdrawal(user_id, number, _validated_amount(amount))
        await self.withdraw_order(order)
        return order

    async def withdraw_order(self, order: Order) -> None:
        """Persist a WITHDRAW order if its owner's balance covers the amount.

        Withdrawing exactly the spendable balance is allowed.
        """

        requested = order.info.accrual
        if not order.is_withdrawal or requested is None or requested.minor_units <= 0:
            raise InvalidAmountError(requested)

        lock = self._withdraw_locks.get(order.user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._withdraw_locks[order.user_id] = lock

        async with lock:
            ledger = await self._repository.orders_by_statuses(order.user_id, LEDGER_STATUSES)
            balance = compute_balance(ledger, log=self._log)
            shortfall = balance.shortfall(requested)
            if shortfall > Accrual.zero():
                self._log.info(
                    "Withdrawal rejected",
                    user_id=str(order.user_id),
                    requested=str(requested),
                    available=str(balance.current),
                    shortfall=str(shortfall),
                )
                raise InsufficientFundsError(requested=requested, available=balance.current, shortfall=shortfall)

            try:
                await self._repository.save_order(order)
            except OrderConflictError as exc:
                raise StorageError(f"Withdrawal {order.number} conflicts with an existing order") from exc

        self._log.info(
            "Withdrawal booked",
            order_id=str(order.id),
            user_id=str(order.user_id),
            number=order.number,
            amount=str(requested),
        )


__all__ = ["LoadOrderOutcome", "OrderSubmissionService"]
