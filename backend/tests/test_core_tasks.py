"""Tests for the background task queue."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.core.tasks import Task, TaskQueue, TaskStatus, get_task_queue


class TestTaskQueue:
    """Test task submission and execution."""

    @pytest.mark.asyncio
    async def test_submit_records_pending_task(self):
        queue = TaskQueue(max_workers=1)
        func = AsyncMock(return_value="done")

        task_id = await queue.submit(func, 1, 2, name="sync_company_7", job_id=7, a=3)

        task = queue.get_task(task_id)
        assert task.name == "sync_company_7"
        assert task.status == TaskStatus.PENDING
        assert task.args == (1, 2)
        assert task.kwargs == {"a": 3}
        assert task.job_id == 7
        assert queue.queue.qsize() == 1
        func.assert_not_called()

    @pytest.mark.asyncio
    async def test_workers_execute_tasks(self):
        queue = TaskQueue(max_workers=2)
        func = AsyncMock(return_value="done")
        await queue.start()
        try:
            task_id = await queue.submit(func, "x", job_id=1)
            await asyncio.wait_for(queue.join(), timeout=5)
        finally:
            await queue.stop()

        task = queue.get_task(task_id)
        assert task.status == TaskStatus.COMPLETED
        assert task.result == "done"
        assert task.started_at is not None
        assert task.completed_at is not None
        func.assert_awaited_once_with("x")
        assert not queue.is_running
        assert queue.workers == []

    @pytest.mark.asyncio
    async def test_failed_task_is_recorded(self):
        queue = TaskQueue(max_workers=1)
        task = Task(name="broken", func=AsyncMock(side_effect=ValueError("bad")))

        await queue._execute_task(task, "worker-0")

        assert task.status == TaskStatus.FAILED
        assert task.error == "bad"

    @pytest.mark.asyncio
    async def test_task_without_function_fails(self):
        queue = TaskQueue(max_workers=1)
        task = Task(name="empty")

        await queue._execute_task(task, "worker-0")

        assert task.status == TaskStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancel_pending_skips_queued_tasks(self):
        queue = TaskQueue(max_workers=1)
        func = AsyncMock()
        await queue.submit(func, job_id=3)
        await queue.submit(func, job_id=4)

        assert queue.cancel_pending(3) == 1
        assert queue.cancel_pending(3) == 0

        (task,) = queue.get_tasks_for_job(3)
        assert task.status == TaskStatus.CANCELLED
        await queue._execute_task(task, "worker-0")
        func.assert_not_called()
        assert task.status == TaskStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_running_tasks_are_not_cancelled_by_cancel_pending(self):
        queue = TaskQueue(max_workers=1)
        task_id = await queue.submit(AsyncMock(), job_id=5)
        queue.get_task(task_id).status = TaskStatus.RUNNING

        assert queue.cancel_pending(5) == 0

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        queue = TaskQueue(max_workers=3)
        await queue.start()
        await queue.start()
        try:
            assert len(queue.workers) == 3
        finally:
            await queue.stop()


def test_get_task_queue_is_singleton():
    with patch("app.core.tasks.task_queue", None):
        first = get_task_queue()
        assert get_task_queue() is first
        assert isinstance(first, TaskQueue)
