"""
Background task queue.

An in-memory asyncio queue with a fixed pool of workers. Sync jobs are
submitted here so HTTP handlers can answer before the work starts.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    """Task status enumeration."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Task:
    """Represents a background task."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    func: Optional[Callable[..., Awaitable[Any]]] = None
    args: tuple = field(default_factory=tuple)
    kwargs: dict = field(default_factory=dict)
    job_id: Optional[int] = None
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TaskQueue:
    """Simple in-memory task queue using asyncio."""

    def __init__(self, max_workers: int = 5):
        """
        Initialize task queue.

        Args:
            max_workers: Maximum number of concurrent workers
        """
        self.max_workers = max_workers
        self.queue: "asyncio.Queue[Task]" = asyncio.Queue()
        self.tasks: Dict[str, Task] = {}
        self.workers: List[asyncio.Task] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the task queue workers."""
        if self._running:
            return

        self._running = True
        logger.info(f"Starting task queue with {self.max_workers} workers")

        for i in range(self.max_workers):
            worker = asyncio.create_task(self._worker(f"worker-{i}"))
            self.workers.append(worker)

    async def stop(self) -> None:
        """Stop the task queue workers."""
        if not self._running:
            return

        logger.info("Stopping task queue")
        self._running = False

        for worker in self.workers:
            worker.cancel()

        if self.workers:
            await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()

    async def _worker(self, worker_id: str) -> None:
        """
        Worker coroutine that processes tasks from the queue.

        Args:
            worker_id: Unique worker identifier
        """
        logger.debug(f"{worker_id} started")

        while self._running:
            try:
                task = await asyncio.wait_for(self.queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                logger.debug(f"{worker_id} cancelled")
                break

            try:
                await self._execute_task(task, worker_id)
            except asyncio.CancelledError:
                break
            finally:
                self.queue.task_done()

        logger.debug(f"{worker_id} stopped")

    async def _execute_task(self, task: Task, worker_id: str) -> None:
        """
        Execute a single task.

        Args:
            task: Task to execute
            worker_id: Worker executing the task
        """
        if task.status == TaskStatus.CANCELLED:
            logger.info(f"Skipping cancelled task {task.id}: {task.name}")
            return

        logger.info(f"{worker_id} executing task {task.id}: {task.name}")
        task.status = TaskStatus.RUNNING
        task.started_at = datetime.utcnow()

        try:
            if not task.func:
                raise ValueError("Task function is not defined")

            task.result = await task.func(*task.args, **task.kwargs)
            task.status = TaskStatus.COMPLETED
            task.completed_at = datetime.utcnow()
            logger.info(f"Task {task.id} completed successfully")

        except asyncio.CancelledError:
            task.status = TaskStatus.CANCELLED
            task.error = "Task was cancelled"
            task.completed_at = datetime.utcnow()
            logger.warning(f"Task {task.id} cancelled")
            raise

        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = datetime.utcnow()
            logger.exception(f"Task {task.id} failed: {e}")

    async def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        name: Optional[str] = None,
        job_id: Optional[int] = None,
        **kwargs: Any,
    ) -> str:
        """
        Submit a coroutine function to the queue.

        Args:
            func: Coroutine function to execute
            *args: Positional arguments for the function
            name: Optional task name
            job_id: Sync job the task works on
            **kwargs: Keyword arguments for the function

        Returns:
            Task ID
        """
        task = Task(
            name=name or func.__name__,
            func=func,
            args=args,
            kwargs=kwargs,
            job_id=job_id,
        )

        self.tasks[task.id] = task
        await self.queue.put(task)

        logger.info(f"Task {task.id} submitted: {task.name}")
        return task.id

    def get_task(self, task_id: str) -> Optional[Task]:
        """Get task by ID."""
        return self.tasks.get(task_id)

    def get_tasks_for_job(self, job_id: int) -> List[Task]:
        return [task for task in self.tasks.values() if task.job_id == job_id]

    def cancel_pending(self, job_id: int) -> int:
        """
        Mark queued tasks of a job as cancelled so workers skip them.

        Returns:
            Number of tasks cancelled
        """
        cancelled = 0
        for task in self.get_tasks_for_job(job_id):
            if task.status == TaskStatus.PENDING:
                task.status = TaskStatus.CANCELLED
                task.error = "Cancelled by user"
                task.completed_at = datetime.utcnow()
                cancelled += 1
        return cancelled

    async def join(self) -> None:
        """Wait until every submitted task has been processed."""
        await self.queue.join()


# Global task queue instance
task_queue: Optional[TaskQueue] = None


def get_task_queue() -> TaskQueue:
    """Get the global task queue instance."""
    global task_queue
    if task_queue is None:
        from app.core.config import get_settings

        task_queue = TaskQueue(max_workers=get_settings().max_workers)
    return task_queue
