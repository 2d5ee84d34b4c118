"""Error types for the extension sweeper."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .collector import SweepReport


class FailureReason(Enum):
    """Why a task was given up on."""

    TIMEOUT = "timeout"  # attempt did not finish within the timeout
    DELETE_FAILED = "delete_failed"  # filesystem returned an error


@dataclass(frozen=True)
class TerminalError:
    """A file that could not be deleted once its retries ran out."""

    file_path: Path
    reason: FailureReason
    retries_exhausted: int
    cause: OSError | None = None

    def describe(self) -> str:
        """Render a one-line, human-readable reason."""
        if self.reason is FailureReason.TIMEOUT:
            return f"timeout deleting file after {self.retries_exhausted} retries: {self.file_path}"
        return (
            f"failed to delete file after {self.retries_exhausted} retries: "
            f"{self.file_path}, {self.cause}"
        )


class SweepError(Exception):
    """Base exception for all sweeper errors."""

    pass


class DirectoryValidationError(SweepError):
    """Raised when no valid directory was supplied within the allowed prompts."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"maximum retries reached for directory validation ({attempts} attempts)")


class QueueClosedError(SweepError):
    """Raised when a task is submitted to a closed queue."""

    pass


class CombinedDeletionError(SweepError):
    """Raised once per run when one or more files could not be deleted.

    Carries every terminal error of the run; the message joins their
    descriptions with ``"; "``.
    """

    def __init__(self, errors: list[TerminalError], report: SweepReport | None = None) -> None:
        """Initialize with the run's terminal errors.

        Args:
            errors: Terminal errors, in arrival order.
            report: The ``SweepReport`` of the run, if available.

        """
        self.errors = list(errors)
        self.report = report
        details = "; ".join(error.describe() for error in self.errors)
        super().__init__(f"errors occurred during file deletion: {details}")

    @property
    def count(self) -> int:
        """Number of files that could not be deleted."""
        return len(self.errors)
