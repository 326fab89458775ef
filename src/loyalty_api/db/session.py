"""Async engine and session factory shared by the API and the reconciler."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from loyalty_api.core.settings import settings

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def create_all() -> None:
    """Create missing tables; migrations remain the source of truth in production."""

    from loyalty_api.db.base import Base  # noqa: WPS433 (late import)
    import loyalty_api.models  # noqa: F401,WPS433

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
