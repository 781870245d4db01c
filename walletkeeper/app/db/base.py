# walletkeeper/app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every table in walletkeeper.app.models."""
    pass
