"""Tests for the bounded-concurrency deletion engine."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Iterator
from pathlib import Path

import pytest

from extension_sweeper.config import EngineConfig
from extension_sweeper.engine import (
    DeletionEngine,
    DirEntry,
    delete_files_with_timeout,
    filter_entries,
    list_entries,
)
from extension_sweeper.errors import CombinedDeletionError, FailureReason


class RecordingRemover:
    """Remover that counts calls per file and tracks thread-level concurrency."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: Counter[str] = Counter()
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> None:
        with self._lock:
            self.calls[path.name] += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            path.unlink()
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def logger() -> logging.Logger:
    """Create a test logger."""
    return logging.getLogger("test-engine")


@pytest.fixture
def release() -> Iterator[threading.Event]:
    """Event that unblocks hung removers once the test is over."""
    event = threading.Event()
    yield event
    event.set()


def _make_files(directory: Path, *names: str) -> list[DirEntry]:
    """Create files in ``directory`` and return their entries."""
    for name in names:
        (directory / name).write_text("x")
    return [DirEntry(name=name) for name in names]


class TestFilterEntries:
    """Tests for entry filtering."""

    def test_keeps_only_matching_files(self) -> None:
        """Test that other extensions and directories are skipped."""
        entries = [
            DirEntry("a.rdp"),
            DirEntry("b.txt"),
            DirEntry("folder.rdp", is_dir=True),
            DirEntry("c.rdp"),
        ]
        assert filter_entries(entries, ".rdp") == ["a.rdp", "c.rdp"]

    def test_suffix_match_only(self) -> None:
        """Test that the extension must be at the end of the name."""
        entries = [DirEntry("a.rdp.bak"), DirEntry("rdp"), DirEntry("x.rdp")]
        assert filter_entries(entries, ".rdp") == ["x.rdp"]


class TestListEntries:
    """Tests for directory listing."""

    def test_lists_files_and_directories(self, tmp_path: Path) -> None:
        """Test that entries report whether they are directories."""
        (tmp_path / "a.rdp").write_text("x")
        (tmp_path / "sub").mkdir()

        entries = list_entries(tmp_path)

        assert entries == [DirEntry("a.rdp", is_dir=False), DirEntry("sub", is_dir=True)]

    def test_symlink_to_directory_is_not_a_directory(self, tmp_path: Path) -> None:
        """Test that a matching symlink is listed as a file and gets deleted, not its target."""
        target = tmp_path / "target"
        target.mkdir()
        (tmp_path / "link.rdp").symlink_to(target, target_is_directory=True)

        entries = list_entries(tmp_path)

        assert DirEntry("link.rdp", is_dir=False) in entries
        assert filter_entries(entries, ".rdp") == ["link.rdp"]

    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        """Test that listing a missing directory raises OSError."""
        with pytest.raises(OSError):
            list_entries(tmp_path / "missing")


class TestDeletionScenarios:
    """End-to-end runs of the engine against a temp directory."""

    @pytest.mark.asyncio
    async def test_deletes_only_matching_files(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that two .rdp files are deleted and the .txt file is untouched."""
        entries = _make_files(tmp_path, "a.rdp", "b.rdp", "c.txt")
        remover = RecordingRemover()
        config = EngineConfig(worker_count=5, max_retries=3, attempt_timeout=1.0, extension=".rdp")

        report = await DeletionEngine(config, logger, remover).run(tmp_path, entries)

        assert report.ok
        assert sorted(p.name for p in report.deleted) == ["a.rdp", "b.rdp"]
        assert sum(remover.calls.values()) == 2
        assert (tmp_path / "c.txt").exists()
        assert not (tmp_path / "a.rdp").exists()
        assert not (tmp_path / "b.rdp").exists()

    @pytest.mark.asyncio
    async def test_persistent_failure_exhausts_retries(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that a file that always fails gets 1 + max_retries attempts."""
        entries = _make_files(tmp_path, "a.rdp")
        calls: list[Path] = []

        def deny(path: Path) -> None:
            calls.append(path)
            raise PermissionError(13, "Permission denied", str(path))

        config = EngineConfig(worker_count=5, max_retries=3, attempt_timeout=1.0)

        with pytest.raises(CombinedDeletionError) as exc_info:
            await delete_files_with_timeout(tmp_path, entries, config, logger=logger, remover=deny)

        assert len(calls) == 4
        error = exc_info.value
        assert error.count == 1
        terminal = error.errors[0]
        assert terminal.file_path == tmp_path / "a.rdp"
        assert terminal.reason is FailureReason.DELETE_FAILED
        assert terminal.retries_exhausted == 3
        assert isinstance(terminal.cause, PermissionError)
        assert "failed to delete file after 3 retries" in str(error)
        assert (tmp_path / "a.rdp").exists()

    @pytest.mark.asyncio
    async def test_timeout_without_retries(
        self, tmp_path: Path, logger: logging.Logger, release: threading.Event
    ) -> None:
        """Test that a hung delete with max_retries=0 fails after a single attempt."""
        entries = _make_files(tmp_path, "a.rdp")
        calls: list[Path] = []

        def hang(path: Path) -> None:
            calls.append(path)
            release.wait(5.0)

        config = EngineConfig(worker_count=5, max_retries=0, attempt_timeout=0.05)
        report = await DeletionEngine(config, logger, hang).run(tmp_path, entries)

        assert len(calls) == 1
        assert report.attempts == 1
        assert len(report.errors) == 1
        assert report.errors[0].reason is FailureReason.TIMEOUT
        assert report.errors[0].retries_exhausted == 0
        assert report.errors[0].describe() == f"timeout deleting file after 0 retries: {tmp_path / 'a.rdp'}"

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(
        self, tmp_path: Path, logger: logging.Logger, release: threading.Event
    ) -> None:
        """Test that each timeout leads to one more attempt until retries run out."""
        entries = _make_files(tmp_path, "a.rdp")
        calls: list[Path] = []

        def hang(path: Path) -> None:
            calls.append(path)
            release.wait(5.0)

        config = EngineConfig(worker_count=2, max_retries=2, attempt_timeout=0.05)
        report = await DeletionEngine(config, logger, hang).run(tmp_path, entries)

        assert len(calls) == 3
        assert [e.reason for e in report.errors] == [FailureReason.TIMEOUT]
        assert report.errors[0].retries_exhausted == 2

    @pytest.mark.asyncio
    async def test_empty_matching_set(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that no attempt is made when nothing matches."""
        entries = _make_files(tmp_path, "c.txt")
        remover = RecordingRemover()
        config = EngineConfig()

        report = await delete_files_with_timeout(tmp_path, entries, config, logger=logger, remover=remover)

        assert report.ok
        assert report.attempts == 0
        assert not remover.calls
        assert (tmp_path / "c.txt").exists()

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that a file failing once is deleted on retry."""
        entries = _make_files(tmp_path, "a.rdp")
        calls: list[Path] = []

        def flaky(path: Path) -> None:
            calls.append(path)
            if len(calls) == 1:
                raise PermissionError(13, "Permission denied", str(path))
            path.unlink()

        config = EngineConfig(max_retries=3)
        report = await DeletionEngine(config, logger, flaky).run(tmp_path, entries)

        assert report.ok
        assert len(calls) == 2
        assert report.deleted == [tmp_path / "a.rdp"]


class TestIdempotentDelete:
    """Tests that a file already gone is not an error."""

    @pytest.mark.asyncio
    async def test_missing_file_counts_as_removed(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that deleting a file that no longer exists succeeds."""
        entries = [DirEntry("ghost.rdp")]
        config = EngineConfig(max_retries=3)

        report = await DeletionEngine(config, logger).run(tmp_path, entries)

        assert report.ok
        assert report.attempts == 1
        assert report.already_absent == [tmp_path / "ghost.rdp"]
        assert report.removed_count == 1

    @pytest.mark.asyncio
    async def test_abandoned_attempt_removes_file_first(
        self, tmp_path: Path, logger: logging.Logger, release: threading.Event
    ) -> None:
        """Test that a retry after a slow but successful delete is not a failure."""
        entries = _make_files(tmp_path, "a.rdp")
        calls: list[Path] = []

        def slow_first(path: Path) -> None:
            calls.append(path)
            path.unlink()
            if len(calls) == 1:
                # Removed, but too slow to report back before the timeout
                release.wait(5.0)

        config = EngineConfig(max_retries=3, attempt_timeout=0.05)
        report = await DeletionEngine(config, logger, slow_first).run(tmp_path, entries)

        assert report.ok
        assert len(calls) == 2
        assert report.already_absent == [tmp_path / "a.rdp"]
        assert not report.deleted
        assert not (tmp_path / "a.rdp").exists()


class TestConcurrency:
    """Tests for the worker pool bounds and accounting."""

    @pytest.mark.asyncio
    async def test_attempts_bounded_by_worker_count(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that no more than worker_count attempts run at once."""
        names = [f"file{i:02d}.rdp" for i in range(20)]
        entries = _make_files(tmp_path, *names)
        remover = RecordingRemover(delay=0.02)
        config = EngineConfig(worker_count=3, max_retries=0, attempt_timeout=2.0)

        report = await DeletionEngine(config, logger, remover).run(tmp_path, entries)

        assert report.ok
        assert len(report.deleted) == 20
        assert report.peak_in_attempt <= 3
        assert remover.peak <= 3
        assert all(count == 1 for count in remover.calls.values())

    @pytest.mark.asyncio
    async def test_every_task_ends_exactly_once(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that mixed outcomes leave no task unaccounted for or duplicated."""
        good = [f"ok{i}.rdp" for i in range(6)]
        bad = [f"bad{i}.rdp" for i in range(4)]
        entries = _make_files(tmp_path, *good, *bad)
        calls: Counter[str] = Counter()
        lock = threading.Lock()

        def remover(path: Path) -> None:
            with lock:
                calls[path.name] += 1
            if path.name.startswith("bad"):
                raise PermissionError(13, "Permission denied", str(path))
            path.unlink()

        config = EngineConfig(worker_count=4, max_retries=2, attempt_timeout=1.0)
        report = await DeletionEngine(config, logger, remover).run(tmp_path, entries)

        deleted = {p.name for p in report.deleted}
        failed = [e.file_path.name for e in report.errors]
        assert deleted == set(good)
        assert sorted(failed) == sorted(bad)
        assert len(failed) == len(set(failed))
        assert deleted.isdisjoint(failed)
        assert all(calls[name] == 3 for name in bad)
        assert all(calls[name] == 1 for name in good)
        assert report.attempts == len(good) + 3 * len(bad)

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_after_workers_exit(
        self, tmp_path: Path, logger: logging.Logger
    ) -> None:
        """Test that a non-OS error stops the run instead of hanging it."""
        entries = _make_files(tmp_path, "a.rdp", "b.rdp", "c.rdp")

        def broken(path: Path) -> None:
            raise ValueError("boom")

        config = EngineConfig(worker_count=2)
        with pytest.raises(ValueError, match="boom"):
            await DeletionEngine(config, logger, broken).run(tmp_path, entries)

    @pytest.mark.asyncio
    async def test_crash_cause_wins_over_pending_retry(self, tmp_path: Path, logger: logging.Logger) -> None:
        """Test that a retry arriving after another worker crashed does not mask the crash."""
        entries = _make_files(tmp_path, "a.rdp", "b.rdp")

        def remover(path: Path) -> None:
            if path.name == "a.rdp":
                time.sleep(0.2)
                raise PermissionError(13, "Permission denied", str(path))
            raise ValueError("boom")

        config = EngineConfig(worker_count=2, max_retries=3, attempt_timeout=1.0)
        with pytest.raises(ValueError, match="boom"):
            await DeletionEngine(config, logger, remover).run(tmp_path, entries)

        assert (tmp_path / "a.rdp").exists()
