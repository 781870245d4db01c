# walletkeeper/app/security/jwt.py
"""
Owner tokens.

The transport layer (chat bot, web front end) authenticates the user on its
own side and mints a short-lived token whose "sub" claim is the owner id.
The wallet API trusts nothing else to identify the owner.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from walletkeeper.app.core.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_owner_token(owner_id: str, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": str(owner_id)}, expires_delta=expires_delta)
