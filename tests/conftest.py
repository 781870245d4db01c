"""
Shared fixtures.

Argon2 costs are lowered through the environment before any walletkeeper
module reads its settings, so sealing and PIN hashing stay fast in tests.
Every test gets its own in-memory SQLite database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEAL_TIME_COST", "1")
os.environ.setdefault("SEAL_MEMORY_COST", "1024")
os.environ.setdefault("SEAL_PARALLELISM", "1")
os.environ.setdefault("PIN_HASH_TIME_COST", "1")
os.environ.setdefault("PIN_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PIN_HASH_PARALLELISM", "1")

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from walletkeeper.app.db import init_models
from walletkeeper.app.db.session import make_session_factory
from walletkeeper.app.services.progress import FollowUpRegistry
from walletkeeper.app.services.wallet import WalletService


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def follow_ups():
    registry = FollowUpRegistry()
    yield registry
    registry.cancel_all()


@pytest.fixture
def service(session_factory, follow_ups):
    return WalletService(session_factory=session_factory, follow_ups=follow_ups)


@pytest.fixture
def count_rows(session_factory):
    """Number of rows of a model matching column == value filters."""

    async def _count(model, **filters) -> int:
        async with session_factory() as session:
            stmt = select(func.count()).select_from(model)
            for column, value in filters.items():
                stmt = stmt.where(getattr(model, column) == value)
            return (await session.execute(stmt)).scalar_one()

    return _count
