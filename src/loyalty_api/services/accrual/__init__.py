"""Clients for the external accrual calculation system."""

from .client import DEFAULT_RETRY_AFTER_SECONDS, AccrualSource, HttpAccrualClient
from .errors import AccrualSourceError, AccrualTransportError, ProtocolError, RetryableSourceError
from .fake import FakeAccrualSource

__all__ = [
    "AccrualSource",
    "AccrualSourceError",
    "AccrualTransportError",
    "DEFAULT_RETRY_AFTER_SECONDS",
    "FakeAccrualSource",
    "HttpAccrualClient",
    "ProtocolError",
    "RetryableSourceError",
]
