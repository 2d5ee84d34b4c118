"""Result collection for a deletion run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .errors import CombinedDeletionError, TerminalError


@dataclass
class SweepReport:
    """Outcome of one deletion run."""

    deleted: list[Path] = field(default_factory=list)
    already_absent: list[Path] = field(default_factory=list)  # removed by an earlier, abandoned attempt
    errors: list[TerminalError] = field(default_factory=list)
    attempts: int = 0
    peak_in_attempt: int = 0

    @property
    def ok(self) -> bool:
        """True when every matching file is gone."""
        return not self.errors

    @property
    def removed_count(self) -> int:
        """Files that ended up deleted, however they got there."""
        return len(self.deleted) + len(self.already_absent)

    def raise_for_errors(self) -> None:
        """Raise ``CombinedDeletionError`` if any file could not be deleted."""
        if self.errors:
            raise CombinedDeletionError(self.errors, report=self)


class ResultCollector:
    """Accumulates per-task outcomes while workers run.

    Workers record into it concurrently; the report may only be read once
    ``seal()`` has been called after every worker exited.
    """

    def __init__(self) -> None:
        self._report = SweepReport()
        self._sealed = False
        self._in_attempt = 0

    def attempt_started(self) -> None:
        """Record that a worker began waiting on an attempt."""
        self._in_attempt += 1
        self._report.attempts += 1
        self._report.peak_in_attempt = max(self._report.peak_in_attempt, self._in_attempt)

    def attempt_ended(self) -> None:
        """Record that a worker stopped waiting on an attempt."""
        self._in_attempt -= 1

    @property
    def in_attempt(self) -> int:
        """Number of attempts currently being awaited."""
        return self._in_attempt

    def record_deleted(self, path: Path) -> None:
        self._check_open()
        self._report.deleted.append(path)

    def record_already_absent(self, path: Path) -> None:
        self._check_open()
        self._report.already_absent.append(path)

    def record_error(self, error: TerminalError) -> None:
        self._check_open()
        self._report.errors.append(error)

    def seal(self) -> SweepReport:
        """Freeze the collector and return the final report."""
        self._sealed = True
        return self._report

    @property
    def report(self) -> SweepReport:
        """The final report.

        Raises:
            RuntimeError: If read before ``seal()``.

        """
        if not self._sealed:
            raise RuntimeError("Report read before all workers finished")
        return self._report

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError("Result recorded after the run was sealed")
