import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")

from loyalty_api.app import create_app  # noqa: E402
from loyalty_api.db.base import Base  # noqa: E402
from loyalty_api.db.session import get_session_factory  # noqa: E402
from loyalty_api.domain.orders import OrderInfo, OrderStatus  # noqa: E402
from loyalty_api.services.accrual import AccrualSource  # noqa: E402
import loyalty_api.models  # noqa: F401,E402


class ScriptedAccrualSource(AccrualSource):
    """Accrual source answering from a per-number script; unknown numbers are NEW."""

    def __init__(self) -> None:
        self.responses: dict[int, OrderInfo | Exception] = {}
        self.calls: list[int] = []

    async def load(self, number: int) -> OrderInfo:
        self.calls.append(number)
        outcome = self.responses.get(number)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return OrderInfo.new(number, OrderStatus.NEW)
        return outcome


@pytest.fixture
def accrual_source():
    return ScriptedAccrualSource()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory, accrual_source):
    app = create_app()
    app.state.accrual_source = accrual_source
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
