# walletkeeper/app/schemas/wallet.py
"""
Pydantic schemas for wallet operations.

The *Request models validate HTTP input; the remaining models are the
values carried by successful OperationResults and double as API responses.
Secret material appears only where the caller explicitly asked for it:
WalletCreated.seed_phrase and PhraseResponse.seed_phrase.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateWalletRequest(BaseModel):
    pin: str = Field(..., min_length=1, max_length=128)
    wallet_name: str = Field(default="Main", min_length=1, max_length=100)


class ImportPhraseRequest(BaseModel):
    seed_phrase: str = Field(..., min_length=1, max_length=512)
    pin: str = Field(..., min_length=1, max_length=128)
    wallet_name: str = Field(default="Imported", min_length=1, max_length=100)


class ImportSecretKeyRequest(BaseModel):
    secret_key: str = Field(..., min_length=1, max_length=1024)
    pin: str = Field(..., min_length=1, max_length=128)
    wallet_name: str = Field(default="Imported", min_length=1, max_length=100)


class PinRequest(BaseModel):
    pin: str = Field(..., min_length=1, max_length=128)


class ChangePinRequest(BaseModel):
    old_pin: str = Field(..., min_length=1, max_length=128)
    new_pin: str = Field(..., min_length=1, max_length=128)


class WalletSummary(BaseModel):
    """Public view of a wallet row. Never carries ciphertexts or hashes."""
    id: int
    public_key: str
    wallet_name: str
    derivation_path: str
    is_active: bool
    has_seed_phrase: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletCreated(BaseModel):
    wallet_id: int
    public_key: str
    wallet_name: str
    # Returned exactly once; afterwards only via the PIN-gated phrase read
    seed_phrase: str


class WalletImported(BaseModel):
    wallet_id: int
    public_key: str
    wallet_name: str
    restored_progress: bool = False


class WalletDeleted(BaseModel):
    public_key: str
    # Snapshot of the progress the owner had before deletion
    backup_id: int


class WalletListResponse(BaseModel):
    wallets: List[WalletSummary]


class PhraseResponse(BaseModel):
    seed_phrase: str
