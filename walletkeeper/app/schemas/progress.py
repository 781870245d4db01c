# walletkeeper/app/schemas/progress.py
"""
Serialized form of an owner's progress, stored in wallet_backups.progress_data.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskRecord(BaseModel):
    """One task row as the backup coordinator sees it."""
    task_type: str
    status: str
    task_data: Optional[str] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProgressSnapshot(BaseModel):
    tasks: List[TaskRecord] = Field(default_factory=list)
    taken_at: datetime
