# walletkeeper/app/models/key_claim.py
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from walletkeeper.app.db.base import Base


class KeyClaim(Base):
    """
    One row per public key currently owned by someone.

    The primary key makes "a public key belongs to at most one owner" a
    storage guarantee: a concurrent import by a second owner fails on insert.
    Claims are released when the owner deletes their wallets.
    """
    __tablename__ = "key_claims"

    public_key = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    claimed_at = Column(DateTime(timezone=True), server_default=func.now())
