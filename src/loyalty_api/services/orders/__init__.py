"""Order intake, withdrawals, queries and storage."""

from .errors import (
    DuplicateSameOwner,
    IdentityMismatch,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidNumberError,
    MalformedNumberError,
    OrderConflict,
    OrderConflictError,
    OrderServiceError,
    OrderValidationError,
    OwnerMismatch,
    StorageError,
)
from .queries import OrderQueryService
from .repository import InMemoryOrderRepository, OrderRepository, SqlAlchemyOrderRepository
from .submission import LoadOrderOutcome, OrderSubmissionService

__all__ = [
    "DuplicateSameOwner",
    "IdentityMismatch",
    "InMemoryOrderRepository",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidNumberError",
    "LoadOrderOutcome",
    "MalformedNumberError",
    "OrderConflict",
    "OrderConflictError",
    "OrderQueryService",
    "OrderRepository",
    "OrderServiceError",
    "OrderSubmissionService",
    "OrderValidationError",
    "OwnerMismatch",
    "SqlAlchemyOrderRepository",
    "StorageError",
]
