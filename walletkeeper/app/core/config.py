# walletkeeper/app/core/config.py
"""
Service settings (pydantic-settings).

Values come from the environment first, then .env, then the defaults below.
The defaults are meant for a developer laptop: SQLite, a throwaway token key
and full-strength Argon2 costs. Tests lower the costs through the environment.
"""
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_SECRET_KEY = "walletkeeper-dev-only-change-me"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./walletkeeper.db"

# Sync driver prefix -> async driver prefix
_ASYNC_DRIVERS = (
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite:///", "sqlite+aiosqlite:///"),
)


class Settings(BaseSettings):
    # ─────────────────────────────────────────────────────────────
    # Service
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Wallet Keeper"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Owner tokens minted by the transport layer
    # ─────────────────────────────────────────────────────────────
    SECRET_KEY: str = DEV_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # ─────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = DEFAULT_DATABASE_URL
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def use_async_driver(cls, v):
        """Rewrite plain postgres/sqlite URLs to their asyncpg/aiosqlite form."""
        if not v:
            return DEFAULT_DATABASE_URL
        url = v.strip()
        for plain, async_prefix in _ASYNC_DRIVERS:
            if url.startswith(plain):
                return async_prefix + url[len(plain):]
        return url

    # Comma separated; empty disables CORS entirely
    CORS_ORIGINS: str = "http://localhost:8000,http://127.0.0.1:8000"

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        return [part.strip() for part in (self.CORS_ORIGINS or "").split(",") if part.strip()]

    # ─────────────────────────────────────────────────────────────
    # Key derivation: purpose 44, coin 501 (Solana), account 0, change 0
    # ─────────────────────────────────────────────────────────────
    DERIVATION_PATH: str = "m/44'/501'/0'/0'"

    # ─────────────────────────────────────────────────────────────
    # Credential cipher (memory costs in KiB)
    # SEAL_*: Argon2id raw KDF feeding AES-256-GCM
    # PIN_HASH_*: Argon2id PHC hash used only for PIN verification
    # ─────────────────────────────────────────────────────────────
    SEAL_TIME_COST: int = Field(default=3, ge=1)
    SEAL_MEMORY_COST: int = Field(default=65536, ge=8)
    SEAL_PARALLELISM: int = Field(default=4, ge=1)

    PIN_HASH_TIME_COST: int = Field(default=3, ge=1)
    PIN_HASH_MEMORY_COST: int = Field(default=65536, ge=8)
    PIN_HASH_PARALLELISM: int = Field(default=4, ge=1)

    # ─────────────────────────────────────────────────────────────
    # PIN policy and lockout
    # ─────────────────────────────────────────────────────────────
    PIN_MIN_LENGTH: int = 4
    PIN_MAX_LENGTH: int = 64
    MAX_FAILED_PIN_ATTEMPTS: int = 5
    PIN_LOCKOUT_MINUTES: int = 15

    # Threads reserved for Argon2 and key derivation
    CRYPTO_WORKERS: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.lower().startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


settings = get_settings()
