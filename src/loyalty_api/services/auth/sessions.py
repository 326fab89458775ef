"""Signed session tokens carrying the member id."""

from __future__ import annotations

import hashlib
import hmac
from uuid import UUID

from loyalty_api.core.settings import settings


def _signature(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_session_token(user_id: UUID, *, secret: str | None = None) -> str:
    payload = str(user_id)
    return f"{payload}.{_signature(payload, secret or settings.secret_key)}"


def resolve_session_token(token: str | None, *, secret: str | None = None) -> UUID | None:
    """Return the user id signed into ``token``, or ``None`` if it does not verify."""

    if not token:
        return None
    payload, _, signature = token.strip().partition(".")
    if not payload or not signature:
        return None
    expected = _signature(payload, secret or settings.secret_key)
    if not hmac.compare_digest(expected, signature):
        return None
    try:
        return UUID(payload)
    except ValueError:
        return None


__all__ = ["issue_session_token", "resolve_session_token"]
