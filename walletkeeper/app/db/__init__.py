import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


async def init_models(bind: AsyncEngine, drop: bool = False) -> None:
    """Create every table and index declared on Base.metadata."""
    from walletkeeper.app.db.base import Base
    # Register models on the metadata
    from walletkeeper.app import models  # noqa: F401

    try:
        async with bind.begin() as conn:
            if drop:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")
    except Exception:
        logger.exception("Could not create database tables")
        raise


if __name__ == "__main__":
    import sys

    from walletkeeper.app.db.session import engine

    logging.basicConfig(level=logging.INFO)
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(init_models(engine))
