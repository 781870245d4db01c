# walletkeeper/app/services/backup.py
"""
Progress backup and one-time replay.

snapshot() runs on the delete path and must be committed before the
destructive transaction starts. restore() runs inside the import
transaction, so the replay and the restored flag commit (or roll back)
together.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from walletkeeper.app.models import Task, WalletBackup
from walletkeeper.app.schemas.progress import ProgressSnapshot, TaskRecord

logger = logging.getLogger(__name__)


async def snapshot(session: AsyncSession, owner_id: str, public_key: str,
                   progress: Sequence[Task]) -> WalletBackup:
    """Persist the owner's current task rows as a new, unrestored backup."""
    payload = ProgressSnapshot(
        tasks=[TaskRecord.model_validate(task) for task in progress],
        taken_at=datetime.now(timezone.utc),
    )
    backup = WalletBackup(
        owner_id=owner_id,
        public_key=public_key,
        progress_data=payload.model_dump_json(),
        restored=False,
    )
    session.add(backup)
    await session.flush()
    logger.info("Progress backup %s saved for %s (%d tasks)",
                backup.id, public_key, len(payload.tasks))
    return backup


async def find_unrestored(session: AsyncSession, public_key: str) -> Optional[WalletBackup]:
    """Newest backup for public_key that has not been replayed yet."""
    result = await session.execute(
        select(WalletBackup)
        .where(WalletBackup.public_key == public_key, WalletBackup.restored.is_(False))
        .order_by(WalletBackup.deleted_at.desc(), WalletBackup.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def restore(session: AsyncSession, owner_id: str, public_key: str) -> bool:
    """
    Apply the newest unrestored backup for public_key onto owner_id's tasks.

    Each recorded task overwrites status, completed_at and task_data of the
    owner's row with the same task type; a missing row is created. Returns
    False when there is nothing to restore.
    """
    backup = await find_unrestored(session, public_key)
    if backup is None:
        return False

    recorded = ProgressSnapshot.model_validate_json(backup.progress_data)

    result = await session.execute(select(Task).where(Task.owner_id == owner_id))
    by_type = {}
    for task in result.scalars().all():
        by_type.setdefault(task.task_type, task)

    for record in recorded.tasks:
        task = by_type.get(record.task_type)
        if task is None:
            task = Task(owner_id=owner_id, task_type=record.task_type)
            session.add(task)
            by_type[record.task_type] = task
        task.status = record.status
        task.completed_at = record.completed_at
        task.task_data = record.task_data

    backup.restored = True
    await session.flush()
    logger.info("Progress backup %s replayed for owner %s", backup.id, owner_id)
    return True
