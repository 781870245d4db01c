# walletkeeper/app/api/v1/endpoints/wallet.py
"""
Wallet endpoints for the transport layer.

The owner is always the "sub" of the bearer token; request bodies never name
an owner. Failures come back as {"error": <ErrorKind>, "message": ...} with
the status codes in ERROR_STATUS.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from walletkeeper.app.api import deps
from walletkeeper.app.core.errors import ErrorKind, OperationResult
from walletkeeper.app.schemas.wallet import (
    ChangePinRequest,
    CreateWalletRequest,
    ImportPhraseRequest,
    ImportSecretKeyRequest,
    PhraseResponse,
    PinRequest,
    WalletCreated,
    WalletDeleted,
    WalletImported,
    WalletListResponse,
    WalletSummary,
)
from walletkeeper.app.services.wallet import WalletService

router = APIRouter()

ERROR_STATUS = {
    ErrorKind.WEAK_CREDENTIAL: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_PHRASE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNRECOGNIZED_FORMAT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_KEY: status.HTTP_409_CONFLICT,
    # Same status and message so callers cannot tell the two apart
    ErrorKind.AUTH_ERROR: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.DECRYPTION_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NO_PHRASE_AVAILABLE: status.HTTP_409_CONFLICT,
    ErrorKind.LOCKED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: OperationResult):
    if result.success:
        return result.value
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
        detail={"error": result.error.value, "message": result.message},
    )


@router.get("/", response_model=WalletSummary)
async def read_active_wallet(
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.get_active_wallet(owner_id))


@router.get("/list", response_model=WalletListResponse)
async def list_wallets(
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return WalletListResponse(wallets=unwrap(await service.list_wallets(owner_id)))


@router.post("/", response_model=WalletCreated, status_code=status.HTTP_201_CREATED)
async def create_wallet(
        request: CreateWalletRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    """
    Create a wallet with a fresh recovery phrase.

    The phrase is in this response and nowhere else; afterwards it can only
    be read back through POST /phrase with the PIN.
    """
    return unwrap(await service.create_wallet(owner_id, request.pin, request.wallet_name))


@router.post("/import/phrase", response_model=WalletImported, status_code=status.HTTP_201_CREATED)
async def import_from_phrase(
        request: ImportPhraseRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.import_from_phrase(
        owner_id, request.seed_phrase, request.pin, request.wallet_name
    ))


@router.post("/import/secret-key", response_model=WalletImported, status_code=status.HTTP_201_CREATED)
async def import_from_secret_key(
        request: ImportSecretKeyRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.import_from_secret_key(
        owner_id, request.secret_key, request.pin, request.wallet_name
    ))


@router.post("/pin", response_model=WalletSummary)
async def change_pin(
        request: ChangePinRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.change_pin(owner_id, request.old_pin, request.new_pin))


@router.post("/deactivate", response_model=WalletSummary)
async def deactivate_wallet(
        request: PinRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.deactivate_wallet(owner_id, request.pin))


@router.post("/delete", response_model=WalletDeleted)
async def delete_wallet(
        request: PinRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return unwrap(await service.delete_wallet(owner_id, request.pin))


@router.post("/phrase", response_model=PhraseResponse)
async def reveal_phrase(
        request: PinRequest,
        owner_id: str = Depends(deps.get_current_owner),
        service: WalletService = Depends(deps.get_wallet_service),
):
    return PhraseResponse(seed_phrase=unwrap(await service.get_phrase(owner_id, request.pin)))
