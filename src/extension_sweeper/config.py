"""Configuration management for the extension sweeper."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Immutable settings for a single deletion run."""

    worker_count: int = 5
    max_retries: int = 3
    attempt_timeout: float = 1.0  # seconds per delete attempt
    extension: str = ".rdp"

    def __post_init__(self) -> None:
        if self.worker_count <= 0:
            raise ValueError(f"worker_count must be > 0, got {self.worker_count}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be > 0, got {self.attempt_timeout}")
        if not self.extension:
            raise ValueError("extension must not be empty")


@dataclass
class SweepConfig:
    """Configuration for the extension sweeper."""

    # Only files whose name ends with this suffix are deleted
    extension: str = ".rdp"

    # Worker pool settings
    worker_count: int = 5
    max_retries: int = 3
    attempt_timeout: float = 1.0  # seconds

    # How many times to ask for a valid directory before giving up
    max_directory_prompts: int = 3

    # Logging
    log_file: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".config/extension-sweeper/config.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> SweepConfig:
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        if not config_path.exists():
            return cls()

        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> SweepConfig:
        """Create config from dictionary."""
        config = cls()

        if "extension" in data:
            config.extension = str(data["extension"])
        if "worker_count" in data:
            config.worker_count = int(data["worker_count"])
        if "max_retries" in data:
            config.max_retries = int(data["max_retries"])
        if "attempt_timeout" in data:
            config.attempt_timeout = float(data["attempt_timeout"])
        if "max_directory_prompts" in data:
            config.max_directory_prompts = int(data["max_directory_prompts"])

        # Logging
        if "logging" in data:
            logging_cfg = data["logging"] or {}
            if logging_cfg.get("file"):
                config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
            if "level" in logging_cfg:
                config.log_level = str(logging_cfg["level"]).upper()

        return config

    def to_engine_config(self) -> EngineConfig:
        """Freeze the pool settings into an ``EngineConfig``.

        Raises:
            ValueError: If any pool setting is out of range.

        """
        return EngineConfig(
            worker_count=self.worker_count,
            max_retries=self.max_retries,
            attempt_timeout=self.attempt_timeout,
            extension=self.extension,
        )

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "extension": self.extension,
            "worker_count": self.worker_count,
            "max_retries": self.max_retries,
            "attempt_timeout": self.attempt_timeout,
            "max_directory_prompts": self.max_directory_prompts,
            "logging": {
                "file": str(self.log_file) if self.log_file else None,
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
