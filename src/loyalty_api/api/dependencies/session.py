"""Session-aware dependencies for member APIs."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from loyalty_api.core.settings import settings
from loyalty_api.models.user import User
from loyalty_api.services.auth import AuthService, resolve_session_token

from .services import get_auth_service


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if credentials and scheme.lower() == "bearer":
        return credentials.strip()
    return authorization.strip()


async def require_member(
    request: Request,
    authorization: str | None = Header(None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Resolve the authenticated member from the session cookie or Authorization header."""

    token = request.cookies.get(settings.session_cookie_name) or _bearer_token(authorization)
    user_id = resolve_session_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid session",
        )

    user = await auth_service.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session user not found",
        )
    return user
