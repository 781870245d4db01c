"""
Tests for progress backup and replay.

Covers services/backup.py:
  - snapshot stores the task rows as JSON, unrestored
  - restore applies the newest unrestored snapshot and flips its flag
  - a snapshot is replayed at most once
  - restore recreates task rows the owner no longer has
  - a rolled back replay leaves the snapshot available
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import delete

from walletkeeper.app.models import Task, TaskStatus, WalletBackup
from walletkeeper.app.schemas.progress import ProgressSnapshot
from walletkeeper.app.services import backup
from walletkeeper.app.services.progress import (
    TASK_TYPES,
    complete_task,
    initialize_default_progress,
    list_progress,
)

PUBLIC_KEY = "8PjJTv657aeN9p5R2WoM6pPSz385chvTTytUWaEjSjkq"


async def _seed_progress(session, owner_id, completed=()):
    async with session.begin():
        await initialize_default_progress(session, owner_id)
        for task_type in completed:
            await complete_task(session, owner_id, task_type, {"by": "test"})


async def _take_snapshot(session, owner_id, public_key=PUBLIC_KEY) -> WalletBackup:
    async with session.begin():
        current = await list_progress(session, owner_id)
        return await backup.snapshot(session, owner_id, public_key, current)


async def _statuses(session, owner_id) -> dict:
    session.expunge_all()
    return {task.task_type: task.status for task in await list_progress(session, owner_id)}


class TestSnapshot:

    async def test_records_every_task(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_wallet"])
            saved = await _take_snapshot(session, "owner-1")

        recorded = ProgressSnapshot.model_validate_json(saved.progress_data)
        assert saved.restored is False
        assert saved.public_key == PUBLIC_KEY
        assert [task.task_type for task in recorded.tasks] == list(TASK_TYPES)
        by_type = {task.task_type: task for task in recorded.tasks}
        assert by_type["create_wallet"].status == TaskStatus.COMPLETED.value
        assert json.loads(by_type["create_wallet"].task_data) == {"by": "test"}
        assert by_type["fund_wallet"].status == TaskStatus.PENDING.value

    async def test_empty_progress(self, session_factory):
        async with session_factory() as session:
            saved = await _take_snapshot(session, "owner-without-tasks")

        assert ProgressSnapshot.model_validate_json(saved.progress_data).tasks == []


class TestRestore:

    async def test_nothing_to_restore(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                assert await backup.restore(session, "owner-1", PUBLIC_KEY) is False

    async def test_replays_onto_fresh_defaults(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_wallet", "fund_wallet"])
            await _take_snapshot(session, "owner-1")

            async with session.begin():
                await session.execute(delete(Task).where(Task.owner_id == "owner-1"))
            session.expunge_all()
            await _seed_progress(session, "owner-1")

            async with session.begin():
                assert await backup.restore(session, "owner-1", PUBLIC_KEY) is True

            statuses = await _statuses(session, "owner-1")

        assert statuses["create_wallet"] == TaskStatus.COMPLETED.value
        assert statuses["fund_wallet"] == TaskStatus.COMPLETED.value
        assert statuses["create_matrix"] == TaskStatus.PENDING.value

    async def test_replayed_once(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_wallet"])
            saved = await _take_snapshot(session, "owner-1")

            async with session.begin():
                assert await backup.restore(session, "owner-1", PUBLIC_KEY) is True
            async with session.begin():
                assert await backup.restore(session, "owner-1", PUBLIC_KEY) is False

            await session.refresh(saved)

        assert saved.restored is True

    async def test_recreates_missing_rows(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_voucher"])
            await _take_snapshot(session, "owner-1")

            async with session.begin():
                await session.execute(delete(Task).where(Task.owner_id == "owner-1"))
            session.expunge_all()

            async with session.begin():
                assert await backup.restore(session, "owner-1", PUBLIC_KEY) is True

            statuses = await _statuses(session, "owner-1")

        assert set(statuses) == set(TASK_TYPES)
        assert statuses["create_voucher"] == TaskStatus.COMPLETED.value

    async def test_newest_snapshot_wins(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1")
            older = await _take_snapshot(session, "owner-1")

            async with session.begin():
                await complete_task(session, "owner-1", "first_referral")
            newer = await _take_snapshot(session, "owner-1")

            async with session.begin():
                found = await backup.find_unrestored(session, PUBLIC_KEY)

        assert found.id == newer.id
        assert found.id != older.id

    async def test_other_key_not_restored(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_wallet"])
            await _take_snapshot(session, "owner-1")

            async with session.begin():
                assert await backup.restore(session, "owner-1", "SomeOtherPublicKey111111111111111") is False

    async def test_rolled_back_replay_stays_available(self, session_factory):
        async with session_factory() as session:
            await _seed_progress(session, "owner-1", completed=["create_wallet"])
            await _take_snapshot(session, "owner-1")

            with pytest.raises(RuntimeError):
                async with session.begin():
                    assert await backup.restore(session, "owner-1", PUBLIC_KEY) is True
                    raise RuntimeError("import failed after replay")
            session.expunge_all()

            async with session.begin():
                found = await backup.find_unrestored(session, PUBLIC_KEY)

        assert found is not None
        assert found.restored is False
