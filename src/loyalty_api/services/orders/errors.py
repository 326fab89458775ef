"""Failure taxonomy for order intake, withdrawals and persistence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID

from loyalty_api.domain.orders import Accrual


@dataclass(frozen=True, slots=True)
class OwnerMismatch:
    """The number is already registered to another user."""

    existing_order_id: UUID


@dataclass(frozen=True, slots=True)
class DuplicateSameOwner:
    """The same user already registered this number."""

    existing_order_id: UUID


@dataclass(frozen=True, slots=True)
class IdentityMismatch:
    """Storage did not echo back the id of the order that was written."""

    expected_order_id: UUID
    actual_order_id: UUID | None


OrderConflict = Union[OwnerMismatch, DuplicateSameOwner, IdentityMismatch]


class OrderServiceError(RuntimeError):
    """Base exception for order intake and ledger failures."""


class OrderValidationError(OrderServiceError):
    """Raised for input that can never succeed as submitted."""


class MalformedNumberError(OrderValidationError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"Order number is not numeric: {raw!r}")
        self.raw = raw


class InvalidNumberError(OrderValidationError):
    def __init__(self, number: int) -> None:
        super().__init__(f"Order number {number} fails the checksum")
        self.number = number


class InvalidAmountError(OrderValidationError):
    def __init__(self, amount: object) -> None:
        super().__init__(f"Withdrawal amount must be positive with at most two decimals: {amount!r}")
        self.amount = amount


class OrderConflictError(OrderServiceError):
    """Raised when a number collides with an existing order."""

    def __init__(self, conflict: OrderConflict, *, number: int) -> None:
        super().__init__(f"Order number {number} conflicts with existing order ({type(conflict).__name__})")
        self.conflict = conflict
        self.number = number


class InsufficientFundsError(OrderServiceError):
    """Raised when a withdrawal exceeds the spendable balance."""

    def __init__(self, *, requested: Accrual, available: Accrual, shortfall: Accrual) -> None:
        self.requested = requested
        self.available = available
        self.shortfall = shortfall
        super().__init__(
            f"Insufficient balance: available {available}, requested {requested}, short by {self.shortfall}"
        )


class StorageError(OrderServiceError):
    """Raised when the order store fails or reports inconsistent data."""


__all__ = [
    "DuplicateSameOwner",
    "IdentityMismatch",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidNumberError",
    "MalformedNumberError",
    "OrderConflict",
    "OrderConflictError",
    "OrderServiceError",
    "OrderValidationError",
    "OwnerMismatch",
    "StorageError",
]
