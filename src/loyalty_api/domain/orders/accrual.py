"""Exact monetary amounts stored as integer hundredths."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("0.01")

# Amounts are stored as signed 64-bit integers of hundredths.
MAX_MINOR_UNITS = 2**63 - 1
_MAX_AMOUNT = Decimal(MAX_MINOR_UNITS) / 100


@dataclass(frozen=True, slots=True, order=True)
class Accrual:
    """An amount of loyalty points in minor units (hundredths)."""

    minor_units: int

    @classmethod
    def zero(cls) -> "Accrual":
        return cls(0)

    @classmethod
    def from_decimal(cls, value: Decimal | int | float | str) -> "Accrual":
        """Build an accrual from a decimal-like value, rounding half-up to cents.

        Floats are routed through ``str`` so that ``12.3`` becomes exactly 1230.
        Values whose magnitude does not fit the storage range raise ``ValueError``.
        """

        try:
            amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
            if not amount.is_finite():
                raise ValueError(f"Invalid accrual amount: {value!r}")
            if abs(amount) > _MAX_AMOUNT:
                raise ValueError(f"Accrual amount out of range: {value!r}")
            cents = amount.quantize(_CENT, rounding=ROUND_HALF_UP)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Invalid accrual amount: {value!r}") from exc
        minor_units = int(cents * 100)
        if abs(minor_units) > MAX_MINOR_UNITS:
            raise ValueError(f"Accrual amount out of range: {value!r}")
        return cls(minor_units)

    def as_decimal(self) -> Decimal:
        return (Decimal(self.minor_units) / 100).quantize(_CENT)

    def __add__(self, other: "Accrual") -> "Accrual":
        if not isinstance(other, Accrual):
            return NotImplemented
        return Accrual(self.minor_units + other.minor_units)

    def __sub__(self, other: "Accrual") -> "Accrual":
        if not isinstance(other, Accrual):
            return NotImplemented
        return Accrual(self.minor_units - other.minor_units)

    def __str__(self) -> str:
        return str(self.as_decimal())


def has_cent_precision(value: Decimal) -> bool:
    """Return True when ``value`` is finite, within range and has no digits beyond hundredths."""

    if not value.is_finite() or abs(value) > _MAX_AMOUNT:
        return False
    try:
        return value == value.quantize(_CENT)
    except InvalidOperation:
        return False


__all__ = ["Accrual", "MAX_MINOR_UNITS", "has_cent_precision"]
