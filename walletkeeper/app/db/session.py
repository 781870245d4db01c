# walletkeeper/app/db/session.py
"""
Engine and session factory.

SQLite gets no pooling (every session opens its own aiosqlite connection);
PostgreSQL gets a small asyncpg pool with pre-ping. SQL echo stays off unless
DATABASE_ECHO is set, since statements can carry ciphertexts.
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from walletkeeper.app.core.config import settings


def _create_async_engine() -> AsyncEngine:
    options = {"echo": settings.DATABASE_ECHO}
    if settings.is_sqlite:
        options.update(
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )
    else:
        options.update(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=300,
        )
    return create_async_engine(settings.DATABASE_URL, **options)


engine: AsyncEngine = _create_async_engine()


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory used by the wallet services.

    expire_on_commit=False: rows loaded in one transaction stay readable
    after it commits (the PIN gate hands its wallet to the next phase).
    autoflush=False: writes happen at explicit flush/commit points only.
    """
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


AsyncSessionLocal: async_sessionmaker[AsyncSession] = make_session_factory(engine)
