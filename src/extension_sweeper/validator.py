"""Interactive directory validation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from rich.prompt import Prompt

from .errors import DirectoryValidationError

PromptFn = Callable[[str], str]


def _ask(message: str) -> str:
    return Prompt.ask(message)


class DirectoryValidator:
    """Asks for a directory path until an existing one is given.

    The number of checks is bounded; once they are used up a
    ``DirectoryValidationError`` is raised instead of prompting forever.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        prompt: PromptFn | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.prompt = prompt or _ask
        self.logger = logger or logging.getLogger("extension-sweeper")

    def validate(self, directory: Path) -> Path:
        """Return the first existing directory, starting with ``directory``.

        Args:
            directory: Initial candidate path.

        Returns:
            A path that exists and is a directory.

        Raises:
            DirectoryValidationError: If every attempt named a missing path.

        """
        candidate = directory
        for attempt in range(1, self.max_attempts + 1):
            if candidate.is_dir():
                return candidate

            self.logger.debug("Invalid directory (attempt %d/%d): %s", attempt, self.max_attempts, candidate)
            if attempt == self.max_attempts:
                break
            answer = self.prompt("Invalid directory. Please enter a valid directory path")
            candidate = Path(answer.strip()).expanduser()

        raise DirectoryValidationError(self.max_attempts)
