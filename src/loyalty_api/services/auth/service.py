"""Member registration and credential checks."""

from __future__ import annotations

from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_api.models.user import User
from loyalty_api.services.orders.errors import StorageError

from .passwords import hash_password, verify_password


class AuthError(RuntimeError):
    """Base exception for member authentication."""


class LoginTakenError(AuthError):
    def __init__(self, login: str) -> None:
        super().__init__(f"Login {login!r} is already registered")
        self.login = login


class InvalidCredentialsError(AuthError):
    def __init__(self) -> None:
        super().__init__("Unknown login or wrong password")


class AuthService:
    """Creates members and verifies their passwords."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, log=None) -> None:
        self._session_factory = session_factory
        self._log = log or logger.bind(component="auth")

    async def register(self, login: str, password: str) -> User:
        user = User(login=login, password_hash=hash_password(password))
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(user)
        except IntegrityError as exc:
            self._log.info("Registration rejected, login taken", login=login)
            raise LoginTakenError(login) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to register {login!r}") from exc

        self._log.info("Member registered", user_id=str(user.id), login=login)
        return user

    async def authenticate(self, login: str, password: str) -> User:
        try:
            async with self._session_factory() as session:
                user = await session.scalar(select(User).where(User.login == login))
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load member {login!r}") from exc

        if user is None or not verify_password(password, user.password_hash):
            self._log.info("Login rejected", login=login)
            raise InvalidCredentialsError()
        return user

    async def get_user(self, user_id: UUID) -> User | None:
        try:
            async with self._session_factory() as session:
                return await session.get(User, user_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load member {user_id}") from exc


__all__ = ["AuthError", "AuthService", "InvalidCredentialsError", "LoginTakenError"]
