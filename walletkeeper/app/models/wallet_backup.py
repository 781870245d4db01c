# walletkeeper/app/models/wallet_backup.py
"""
Progress snapshots taken when a wallet is deleted.

Keyed by public key: importing the same key later replays the newest
unrestored snapshot exactly once.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from sqlalchemy.sql import func

from walletkeeper.app.db.base import Base


class WalletBackup(Base):
    __tablename__ = "wallet_backups"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    public_key = Column(String(64), nullable=False, index=True)

    # ProgressSnapshot serialized as JSON (schemas/progress.py)
    progress_data = Column(Text, nullable=False)

    deleted_at = Column(DateTime(timezone=True), server_default=func.now())

    # Flips to True once, in the transaction that applies the replay
    restored = Column(Boolean, nullable=False, default=False)
