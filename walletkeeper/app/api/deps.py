# walletkeeper/app/api/deps.py
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError
from typing import Optional

from walletkeeper.app.core.config import settings
from walletkeeper.app.services.wallet import WalletService

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/token",
    auto_error=True,
)


class TokenPayload(BaseModel):
    sub: Optional[str] = None


async def get_current_owner(token: str = Depends(reusable_oauth2)) -> str:
    """Owner id from the "sub" claim of the transport-issued token."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )

    if not token_data.sub:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )
    return token_data.sub


def get_wallet_service(request: Request) -> WalletService:
    """The WalletService created in the application lifespan."""
    return request.app.state.wallet_service
