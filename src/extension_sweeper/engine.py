"""Bounded-concurrency deletion engine."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .attempt import Remover, abandon, remove_file, start_attempt
from .collector import ResultCollector, SweepReport
from .config import EngineConfig
from .errors import FailureReason, QueueClosedError, TerminalError
from .tasks import DeletionTask, TaskQueue


@dataclass(frozen=True)
class DirEntry:
    """A directory listing entry as supplied by the caller."""

    name: str
    is_dir: bool = False


def list_entries(directory: Path) -> list[DirEntry]:
    """List the immediate entries of a directory, sorted by name.

    Raises:
        OSError: If the directory cannot be read.

    """
    with os.scandir(directory) as it:
        entries = [DirEntry(name=entry.name, is_dir=entry.is_dir(follow_symlinks=False)) for entry in it]
    return sorted(entries, key=lambda e: e.name)


def filter_entries(entries: Iterable[DirEntry], extension: str) -> list[str]:
    """Return names of non-directory entries ending with ``extension``."""
    return [entry.name for entry in entries if not entry.is_dir and entry.name.endswith(extension)]


class DeletionEngine:
    """Deletes matching files with a fixed pool of workers.

    Every file becomes a ``DeletionTask``. Workers race each delete attempt
    against ``attempt_timeout`` and re-queue failed or timed-out tasks until
    ``max_retries`` is used up, after which the task turns into exactly one
    ``TerminalError``.
    """

    def __init__(
        self,
        config: EngineConfig,
        logger: logging.Logger | None = None,
        remover: Remover = remove_file,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Immutable run configuration.
            logger: Logger instance. Defaults to the package logger.
            remover: Blocking callable that deletes one file.

        """
        self.config = config
        self.logger = logger or logging.getLogger("extension-sweeper")
        self.remover = remover

    async def run(self, directory: Path, entries: Sequence[DirEntry]) -> SweepReport:
        """Delete every matching file in ``directory``.

        Never fails fast: the report is returned only after every task has
        been deleted or given up on.

        Args:
            directory: Directory holding the entries, already validated.
            entries: Listing of ``directory``.

        Returns:
            Report with deleted files and terminal errors.

        """
        names = filter_entries(entries, self.config.extension)
        collector = ResultCollector()

        if not names:
            self.logger.info("No files ending with %s in %s", self.config.extension, directory)
            return collector.seal()

        self.logger.info(
            "Deleting %d %s files with %d workers",
            len(names),
            self.config.extension,
            self.config.worker_count,
        )

        queue = TaskQueue()
        for name in names:
            queue.submit(DeletionTask(file_name=name))
        queue.submission_complete()

        workers = [
            asyncio.create_task(self._worker(queue, collector, directory), name=f"sweeper-worker-{i}")
            for i in range(min(self.config.worker_count, len(names)))
        ]
        results = await asyncio.gather(*workers, return_exceptions=True)

        report = collector.seal()
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            # A closed-queue error is a consequence of the crash, not its cause.
            raise next((f for f in failures if not isinstance(f, QueueClosedError)), failures[0])

        self.logger.info(
            "Run finished: %d deleted, %d already gone, %d failed, %d attempts",
            len(report.deleted),
            len(report.already_absent),
            len(report.errors),
            report.attempts,
        )
        return report

    async def _worker(self, queue: TaskQueue, collector: ResultCollector, directory: Path) -> None:
        """Consume tasks until the queue is closed and drained."""
        try:
            while (task := await queue.get()) is not None:
                await self._process_task(task, queue, collector, directory)
        except Exception:
            # Let the other workers drain out instead of waiting forever.
            queue.close()
            raise

    async def _process_task(
        self,
        task: DeletionTask,
        queue: TaskQueue,
        collector: ResultCollector,
        directory: Path,
    ) -> None:
        """Run one attempt for ``task`` and apply the retry rules."""
        path = directory / task.file_name
        attempt = start_attempt(self.remover, path)

        collector.attempt_started()
        try:
            done, _pending = await asyncio.wait({attempt}, timeout=self.config.attempt_timeout)
        finally:
            collector.attempt_ended()

        if not done:
            abandon(attempt, path)
            self._retry_or_fail(task, queue, collector, path, FailureReason.TIMEOUT, None)
            return

        error = attempt.exception()
        if error is None:
            self.logger.info("Deleted file: %s", path)
            collector.record_deleted(path)
            queue.task_finished()
        elif isinstance(error, FileNotFoundError):
            # An abandoned earlier attempt got there first.
            self.logger.debug("File already gone: %s", path)
            collector.record_already_absent(path)
            queue.task_finished()
        elif isinstance(error, OSError):
            self._retry_or_fail(task, queue, collector, path, FailureReason.DELETE_FAILED, error)
        else:
            raise error

    def _retry_or_fail(
        self,
        task: DeletionTask,
        queue: TaskQueue,
        collector: ResultCollector,
        path: Path,
        reason: FailureReason,
        cause: OSError | None,
    ) -> None:
        if queue.closed:
            # Another worker crashed and aborted the run.
            self.logger.debug("Run aborted, not retrying %s", path.name)
            return

        if task.retry_count < self.config.max_retries:
            task.retry_count += 1
            self.logger.warning(
                "Attempt on %s failed (%s), retry %d/%d",
                path.name,
                cause if cause is not None else reason.value,
                task.retry_count,
                self.config.max_retries,
            )
            queue.requeue(task)
            return

        terminal = TerminalError(
            file_path=path,
            reason=reason,
            retries_exhausted=task.retry_count,
            cause=cause,
        )
        self.logger.error("Giving up on %s", terminal.describe())
        collector.record_error(terminal)
        queue.task_finished()


async def delete_files_with_timeout(
    directory: Path,
    entries: Sequence[DirEntry],
    config: EngineConfig,
    logger: logging.Logger | None = None,
    remover: Remover = remove_file,
) -> SweepReport:
    """Delete matching files and fail with one combined error if any remain.

    Raises:
        CombinedDeletionError: If one or more files could not be deleted.

    """
    engine = DeletionEngine(config, logger=logger, remover=remover)
    report = await engine.run(directory, entries)
    report.raise_for_errors()
    return report
