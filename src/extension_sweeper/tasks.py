"""Deletion task queue shared by the worker pool."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from .errors import QueueClosedError


@dataclass
class DeletionTask:
    """One pending attempt to delete a file."""

    file_name: str
    retry_count: int = 0


class TaskQueue:
    """Unbounded FIFO of deletion tasks with drain-based closing.

    The queue tracks how many submitted tasks are still live, meaning not yet
    deleted and not yet given up on. It closes itself only after the producer
    called ``submission_complete()`` and the live count has dropped to zero.
    At that point no worker can be holding a task that still needs to be
    re-queued, so a requeue after close cannot happen.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DeletionTask | None] = asyncio.Queue()
        self._live = 0
        self._submission_done = False
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the queue has been closed for good."""
        return self._closed

    @property
    def live(self) -> int:
        """Number of submitted tasks that have not reached a terminal state."""
        return self._live

    def submit(self, task: DeletionTask) -> None:
        """Add a freshly created task.

        Raises:
            QueueClosedError: If called after ``submission_complete()``.

        """
        if self._submission_done or self._closed:
            raise QueueClosedError(f"Cannot submit {task.file_name}: submission already complete")
        self._live += 1
        self._queue.put_nowait(task)

    def requeue(self, task: DeletionTask) -> None:
        """Put a live task back for another attempt.

        Re-queued tasks go to the back of the queue, behind fresh tasks.

        Raises:
            QueueClosedError: If the queue is already closed.

        """
        if self._closed:
            raise QueueClosedError(f"Cannot requeue {task.file_name}: queue is closed")
        self._queue.put_nowait(task)

    def task_finished(self) -> None:
        """Mark one live task as terminal (deleted or given up on)."""
        if self._live <= 0:
            raise RuntimeError("task_finished() called more times than tasks were submitted")
        self._live -= 1
        self._maybe_close()

    def submission_complete(self) -> None:
        """Signal that the producer has submitted every initial task."""
        self._submission_done = True
        self._maybe_close()

    def close(self) -> None:
        """Close the queue and wake every waiting consumer."""
        if self._closed:
            return
        self._closed = True
        # Only non-empty when closed early, after a worker crashed.
        while not self._queue.empty():
            self._queue.get_nowait()
        # A single sentinel is enough: each consumer that sees it puts it back.
        self._queue.put_nowait(None)

    async def get(self) -> DeletionTask | None:
        """Wait for the next task.

        Returns:
            The next task, or None once the queue is closed and drained.

        """
        task = await self._queue.get()
        if task is None:
            self._queue.put_nowait(None)
        return task

    def _maybe_close(self) -> None:
        if self._submission_done and self._live == 0:
            self.close()
