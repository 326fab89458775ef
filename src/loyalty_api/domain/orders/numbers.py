"""Order number parsing and Luhn checksum validation."""

from __future__ import annotations

# Numbers are stored as signed 64-bit integers.
MAX_ORDER_NUMBER = 2**63 - 1


def parse_number(text: str) -> int:
    """Parse a textual order number consisting of ASCII digits only."""

    candidate = (text or "").strip()
    if not candidate or not candidate.isascii() or not candidate.isdigit():
        raise ValueError(f"Order number must be a non-empty string of digits: {text!r}")
    number = int(candidate)
    if number > MAX_ORDER_NUMBER:
        raise ValueError(f"Order number is too long: {text!r}")
    return number


def _luhn_sum(digits: str, *, double_first: bool) -> int:
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if (index % 2 == 0) == double_first:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total


def is_valid_number(number: int) -> bool:
    """Return True when ``number`` passes the mod-10 (Luhn) checksum.

    Zero satisfies the arithmetic and is therefore accepted.
    """

    if number < 0:
        return False
    return _luhn_sum(str(number), double_first=False) % 10 == 0


def luhn_check_digit(payload: int) -> int:
    """Return the digit that makes ``payload * 10 + digit`` Luhn-valid."""

    if payload < 0:
        raise ValueError("Payload must be non-negative")
    return (10 - _luhn_sum(str(payload), double_first=True) % 10) % 10


__all__ = ["MAX_ORDER_NUMBER", "is_valid_number", "luhn_check_digit", "parse_number"]
