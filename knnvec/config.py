"""Configuration management with Pydantic and XDG base directory support."""

import os
import sys
from pathlib import Path
from typing import Any

from pydantic import Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def _default_thread_count() -> int:
    return max(1, os.cpu_count() or 1)


class Settings(BaseSettings):
    """knnvec configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="KNNVEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/knnvec)",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Verbosity of the knnvec logger once the library is initialized",
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Formatter pattern for the stderr log handler",
    )

    # Index defaults used by the CLI
    default_space: str = Field(
        default="l2",
        description="Space used when the CLI is not given --space",
    )

    default_method: str = Field(
        default="hnsw",
        description="Index method used when the CLI is not given --method",
    )

    # Batch querying
    num_threads: int = Field(
        default_factory=_default_thread_count,
        ge=1,
        description="Worker threads for batch queries when the caller does not choose",
    )

    batch_pad_value: int = Field(
        default=-1,
        description="Identifier written into unused cells of fixed-width batch results",
    )

    # Build progress reporting
    print_progress: bool = Field(
        default=False,
        description="Log build progress while methods insert points",
    )

    progress_interval: int = Field(
        default=10_000,
        ge=1,
        description="Number of inserted points between progress log lines",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}; got {value!r}")
        return level

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "knnvec"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".knnvec-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_index_dir(self) -> Path:
        """Get path to the directory holding saved index bundles."""
        index_dir = self.get_data_dir() / "indexes"
        index_dir.mkdir(parents=True, exist_ok=True)
        return index_dir


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
