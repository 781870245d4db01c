# walletkeeper/app/models/task.py
"""
Owner-scoped collaborator tables.

Progress rows (tasks) are snapshotted and replayed by the backup
coordinator; notifications and monitors are only ever removed when the
owner deletes their wallet.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float
from sqlalchemy.sql import func

from walletkeeper.app.db.base import Base


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    task_type = Column(String(50), nullable=False)
    # Opaque JSON payload owned by the task engine
    task_data = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())
    read_at = Column(DateTime(timezone=True), nullable=True)


class Monitor(Base):
    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    public_key = Column(String(64), nullable=False)
    monitor_type = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_balance = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
