"""Errors reported by accrual sources."""

from __future__ import annotations


class AccrualSourceError(RuntimeError):
    """Base class for accrual source failures."""

    def __init__(self, message: str, *, number: int | None = None) -> None:
        super().__init__(message)
        self.number = number


class RetryableSourceError(AccrualSourceError):
    """The source asked us to back off (rate limit or transient failure)."""

    def __init__(self, message: str, *, after_seconds: int, number: int | None = None) -> None:
        super().__init__(message, number=number)
        self.after_seconds = after_seconds


class ProtocolError(AccrualSourceError):
    """The source answered with a status or body this client does not understand."""


class AccrualTransportError(AccrualSourceError):
    """The request never produced a response (connection, timeout)."""


__all__ = [
    "AccrualSourceError",
    "AccrualTransportError",
    "ProtocolError",
    "RetryableSourceError",
]
