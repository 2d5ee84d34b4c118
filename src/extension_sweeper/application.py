"""Wires validation, listing and the deletion engine into one run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

from .attempt import Remover, remove_file
from .collector import SweepReport
from .engine import DeletionEngine, list_entries
from .validator import DirectoryValidator, PromptFn

if TYPE_CHECKING:
    from .config import EngineConfig, SweepConfig

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class SweepApplication:
    """Runs one sweep of a directory."""

    def __init__(
        self,
        config: SweepConfig,
        *,
        console: Console | None = None,
        prompt: PromptFn | None = None,
        remover: Remover = remove_file,
    ) -> None:
        """Initialize the application.

        Args:
            config: Sweeper configuration.
            console: Console for user-facing output.
            prompt: Replacement for the interactive directory prompt.
            remover: Blocking callable that deletes one file.

        Raises:
            ValueError: If the log level or pool settings are invalid.

        """
        self.config = config
        self.console = console or Console()
        self.logger = self._setup_logging()

        # Validate before touching the filesystem
        self.engine_config: EngineConfig = config.to_engine_config()

        self.validator = DirectoryValidator(
            max_attempts=config.max_directory_prompts,
            prompt=prompt,
            logger=self.logger,
        )
        self.engine = DeletionEngine(self.engine_config, logger=self.logger, remover=remover)

    def _setup_logging(self) -> logging.Logger:
        """Set up logging for the application.

        Returns:
            Configured logger instance.

        """
        level_name = self.config.log_level.upper()
        if level_name not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level {self.config.log_level!r}; expected one of {sorted(_VALID_LOG_LEVELS)}"
            )

        logger = logging.getLogger("extension-sweeper")
        logger.setLevel(getattr(logging, level_name))

        # Clear existing handlers to avoid duplicates if the app is recreated
        if logger.handlers:
            logger.handlers.clear()

        console_handler = RichHandler(
            console=self.console,
            show_time=True,
            show_path=False,
        )
        console_handler.setLevel(getattr(logging, level_name))
        logger.addHandler(console_handler)

        if self.config.log_file is not None:
            self.config.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
            )
            logger.addHandler(file_handler)

        return logger

    async def run(self, directory: Path) -> SweepReport:
        """Validate ``directory`` and delete every matching file in it.

        Args:
            directory: Directory named by the user.

        Returns:
            Report of the run. Check ``report.ok`` or call
            ``report.raise_for_errors()``.

        Raises:
            DirectoryValidationError: If no valid directory was given.
            OSError: If the directory cannot be listed.

        """
        valid_dir = self.validator.validate(directory)
        entries = list_entries(valid_dir)
        self.console.print(f"Total files in directory: {len(entries)}")

        return await self.engine.run(valid_dir, entries)
