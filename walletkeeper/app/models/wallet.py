# walletkeeper/app/models/wallet.py
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Index, text
from sqlalchemy.sql import func

from walletkeeper.app.db.base import Base

# Stored in encrypted_seed / derivation_path for wallets imported from a raw key
NO_SEED_PHRASE = "NO_SEED_PHRASE"
IMPORTED_FROM_KEY = "IMPORTED_FROM_KEY"


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        # At most one active wallet per owner, enforced by the database
        Index(
            "uq_wallets_active_owner",
            "owner_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_wallets_owner_public_key", "owner_id", "public_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)

    # Base58 public key. Cross-owner uniqueness lives in key_claims because
    # an owner may keep inactive historical rows for the same key.
    public_key = Column(String(64), nullable=False, index=True)

    # --- SECRET DATA (sealed under the owner's PIN) ---
    # JSON envelope from security.cipher, or NO_SEED_PHRASE
    encrypted_seed = Column(Text, nullable=False)
    # Sealed base64 text of the 64-byte secret key
    encrypted_secret_key = Column(Text, nullable=False)

    # Argon2id PHC string. Only for verifying the PIN, never for decryption.
    pin_hash = Column(String(255), nullable=False)

    derivation_path = Column(String(64), nullable=False)
    wallet_name = Column(String(100), nullable=False, default="Main")
    is_active = Column(Boolean, nullable=False, default=True)

    failed_pin_attempts = Column(Integer, nullable=False, default=0)
    last_failed_pin_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def has_seed_phrase(self) -> bool:
        return self.encrypted_seed != NO_SEED_PHRASE
