"""Member authentication services."""

from .passwords import hash_password, verify_password
from .service import AuthError, AuthService, InvalidCredentialsError, LoginTakenError
from .sessions import issue_session_token, resolve_session_token

__all__ = [
    "AuthError",
    "AuthService",
    "InvalidCredentialsError",
    "LoginTakenError",
    "hash_password",
    "issue_session_token",
    "resolve_session_token",
    "verify_password",
]
