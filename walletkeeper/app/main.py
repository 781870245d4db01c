# walletkeeper/app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.middleware.cors import CORSMiddleware

from walletkeeper.app.api.v1.router import api_router
from walletkeeper.app.core.config import DEV_SECRET_KEY, settings
from walletkeeper.app.core.logging import configure_logging
from walletkeeper.app.core.workers import run_blocking, shutdown_executor
from walletkeeper.app.db import init_models
from walletkeeper.app.db.session import engine as default_engine, make_session_factory
from walletkeeper.app.security import cipher
from walletkeeper.app.services.progress import FollowUpRegistry
from walletkeeper.app.services.wallet import WalletService

logger = logging.getLogger(__name__)


def create_app(bind: Optional[AsyncEngine] = None) -> FastAPI:
    """Build the API; tests pass their own engine."""
    db_engine = bind or default_engine

    # --- LIFESPAN: tables, crypto sanity check, services ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        if settings.is_production and settings.SECRET_KEY == DEV_SECRET_KEY:
            raise RuntimeError("SECRET_KEY must be set in production")
        await init_models(db_engine)

        if not await run_blocking(cipher.self_test):
            logger.error("Credential cipher self-test failed")

        follow_ups = FollowUpRegistry()
        app.state.follow_ups = follow_ups
        app.state.wallet_service = WalletService(
            session_factory=make_session_factory(db_engine),
            follow_ups=follow_ups,
        )
        yield
        follow_ups.cancel_all()
        shutdown_executor()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    return app


app = create_app()
