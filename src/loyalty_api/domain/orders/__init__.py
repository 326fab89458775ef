"""Order lifecycle domain: numbers, statuses, amounts and balances."""

from .accrual import MAX_MINOR_UNITS, Accrual, has_cent_precision
from .balance import Balance, compute_balance
from .entities import Order, OrderInfo
from .numbers import is_valid_number, luhn_check_digit, parse_number
from .status import (
    LEDGER_STATUSES,
    PENDING_STATUSES,
    PURCHASE_STATUSES,
    TERMINAL_STATUSES,
    OrderStatus,
)

__all__ = [
    "Accrual",
    "Balance",
    "LEDGER_STATUSES",
    "MAX_MINOR_UNITS",
    "Order",
    "OrderInfo",
    "OrderStatus",
    "PENDING_STATUSES",
    "PURCHASE_STATUSES",
    "TERMINAL_STATUSES",
    "compute_balance",
    "has_cent_precision",
    "is_valid_number",
    "luhn_check_digit",
    "parse_number",
]
