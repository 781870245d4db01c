"""
Tests for the progress collaborator and scheduled follow-ups.

Covers services/progress.py:
  - default rows, one pending row per task type
  - completing a task once, and cancelling its follow-up
  - FollowUpRegistry scheduling, replacement and cancellation
"""

from __future__ import annotations

import asyncio
import json

import pytest

from walletkeeper.app.models import TaskStatus
from walletkeeper.app.services.progress import (
    TASK_TYPES,
    FollowUpRegistry,
    complete_task,
    initialize_default_progress,
    list_progress,
)


class TestProgressRows:

    async def test_defaults_all_pending(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                await initialize_default_progress(session, "owner-1")
            tasks = await list_progress(session, "owner-1")

        assert [task.task_type for task in tasks] == list(TASK_TYPES)
        assert all(task.status == TaskStatus.PENDING.value for task in tasks)

    async def test_owner_isolation(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                await initialize_default_progress(session, "owner-1")
            assert await list_progress(session, "owner-2") == []

    async def test_complete_task_once(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                await initialize_default_progress(session, "owner-1")
            async with session.begin():
                first = await complete_task(session, "owner-1", "fund_wallet", {"amount": 1})
            async with session.begin():
                second = await complete_task(session, "owner-1", "fund_wallet")

            tasks = {task.task_type: task for task in await list_progress(session, "owner-1")}
            task = tasks["fund_wallet"]
            await session.refresh(task)

        assert first is True
        assert second is False
        assert task.task_type == "fund_wallet"
        assert task.status == TaskStatus.COMPLETED.value
        assert task.completed_at is not None
        assert json.loads(task.task_data) == {"amount": 1}

    async def test_complete_unknown_owner(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                assert await complete_task(session, "nobody", "fund_wallet") is False

    async def test_complete_cancels_follow_up(self, session_factory, follow_ups):
        async def remind():
            pass

        follow_ups.schedule("owner-1", "fund_wallet", 60, remind)
        async with session_factory() as session:
            async with session.begin():
                await initialize_default_progress(session, "owner-1")
            async with session.begin():
                await complete_task(session, "owner-1", "fund_wallet", follow_ups=follow_ups)

        assert not follow_ups.is_pending("owner-1", "fund_wallet")


class TestFollowUpRegistry:

    async def test_callback_runs_after_delay(self):
        registry = FollowUpRegistry()
        fired = asyncio.Event()

        async def remind():
            fired.set()

        registry.schedule("owner-1", "fund_wallet", 0.01, remind)
        assert registry.is_pending("owner-1", "fund_wallet")
        await asyncio.wait_for(fired.wait(), timeout=2)
        await asyncio.sleep(0)
        assert not registry.is_pending("owner-1", "fund_wallet")

    async def test_reschedule_replaces(self):
        registry = FollowUpRegistry()
        calls = []

        async def first():
            calls.append("first")

        async def second():
            calls.append("second")

        registry.schedule("owner-1", "fund_wallet", 0.05, first)
        registry.schedule("owner-1", "fund_wallet", 0.01, second)
        assert len(registry) == 1
        await asyncio.sleep(0.1)
        assert calls == ["second"]

    async def test_cancel(self):
        registry = FollowUpRegistry()
        calls = []

        async def remind():
            calls.append("fired")

        registry.schedule("owner-1", "fund_wallet", 0.01, remind)
        assert registry.cancel("owner-1", "fund_wallet") is True
        assert registry.cancel("owner-1", "fund_wallet") is False
        await asyncio.sleep(0.05)
        assert calls == []

    async def test_cancel_owner_leaves_others(self):
        registry = FollowUpRegistry()

        async def remind():
            pass

        registry.schedule("owner-1", "fund_wallet", 60, remind)
        registry.schedule("owner-1", "create_matrix", 60, remind)
        registry.schedule("owner-2", "fund_wallet", 60, remind)

        assert registry.cancel_owner("owner-1") == 2
        assert not registry.is_pending("owner-1", "create_matrix")
        assert registry.is_pending("owner-2", "fund_wallet")
        registry.cancel_all()
        assert len(registry) == 0

    @pytest.mark.parametrize("task_type", TASK_TYPES)
    async def test_every_task_type_can_be_scheduled(self, task_type):
        registry = FollowUpRegistry()

        async def remind():
            pass

        registry.schedule("owner-1", task_type, 60, remind)
        assert registry.is_pending("owner-1", task_type)
        registry.cancel_all()
