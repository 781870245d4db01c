# walletkeeper/app/services/progress.py
"""
Reference implementation of the progress/task collaborator.

The wallet core only relies on initialize_default_progress and on the shape
of task rows. Every function takes the caller's session and never commits,
so it joins whatever transaction the caller has open.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from walletkeeper.app.models import Task, TaskStatus

logger = logging.getLogger(__name__)

TASK_TYPES = (
    "create_wallet",
    "fund_wallet",
    "create_matrix",
    "create_voucher",
    "first_referral",
    "second_referral",
    "third_referral",
)


async def initialize_default_progress(session: AsyncSession, owner_id: str) -> None:
    """Insert one pending row per task type for owner_id."""
    session.add_all(
        Task(owner_id=owner_id, task_type=task_type, status=TaskStatus.PENDING.value)
        for task_type in TASK_TYPES
    )
    await session.flush()
    logger.info("Default progress initialized for owner %s", owner_id)


async def list_progress(session: AsyncSession, owner_id: str) -> List[Task]:
    """Task rows for owner_id in their canonical order."""
    result = await session.execute(select(Task).where(Task.owner_id == owner_id))
    order = {task_type: index for index, task_type in enumerate(TASK_TYPES)}
    return sorted(
        result.scalars().all(),
        key=lambda task: (order.get(task.task_type, len(order)), task.id),
    )


async def complete_task(session: AsyncSession, owner_id: str, task_type: str,
                        task_data: Optional[dict] = None,
                        follow_ups: Optional["FollowUpRegistry"] = None) -> bool:
    """
    Mark a pending task completed. Returns False if nothing was pending.

    A scheduled follow-up for the same task is cancelled, since its
    condition is now satisfied.
    """
    result = await session.execute(
        update(Task)
        .where(
            Task.owner_id == owner_id,
            Task.task_type == task_type,
            Task.status == TaskStatus.PENDING.value,
        )
        .values(
            status=TaskStatus.COMPLETED.value,
            completed_at=datetime.now(timezone.utc),
            task_data=json.dumps(task_data or {}),
        )
    )
    if result.rowcount == 0:
        return False

    logger.info("Task %s completed for owner %s", task_type, owner_id)
    if follow_ups is not None:
        follow_ups.cancel(owner_id, task_type)
    return True


class FollowUpRegistry:
    """
    Per-owner scheduled follow-ups (reminders), keyed by (owner, task type).

    Owned by the transport layer. Scheduling a key that already has a
    pending follow-up replaces it; completing the task cancels it.
    """

    def __init__(self) -> None:
        self._pending: Dict[Tuple[str, str], asyncio.Task] = {}

    def schedule(self, owner_id: str, task_type: str, delay: float,
                 callback: Callable[[], Awaitable[None]]) -> None:
        key = (owner_id, task_type)
        self.cancel(owner_id, task_type)

        async def _run() -> None:
            try:
                await asyncio.sleep(delay)
                await callback()
            finally:
                if self._pending.get(key) is asyncio.current_task():
                    del self._pending[key]

        self._pending[key] = asyncio.create_task(_run())

    def cancel(self, owner_id: str, task_type: str) -> bool:
        task = self._pending.pop((owner_id, task_type), None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_owner(self, owner_id: str) -> int:
        keys = [key for key in self._pending if key[0] == owner_id]
        for _, task_type in keys:
            self.cancel(owner_id, task_type)
        return len(keys)

    def cancel_all(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    def is_pending(self, owner_id: str, task_type: str) -> bool:
        return (owner_id, task_type) in self._pending

    def __len__(self) -> int:
        return len(self._pending)
