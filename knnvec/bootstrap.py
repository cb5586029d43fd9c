"""Library initialization and application wiring."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from knnvec.app.bundle import load_bundle, save_bundle
from knnvec.app.handle import IndexHandle
from knnvec.config import Settings, get_settings
from knnvec.utils.logs import configure_logging, reset_logging

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_log_handler: logging.Handler | None = None


def init_library(settings: Settings | None = None) -> None:
    """Install the process-wide log handler once; later calls are no-ops."""
    global _log_handler
    active = settings or get_settings()
    with _init_lock:
        if _log_handler is not None:
            return
        _log_handler = configure_logging(active.log_level, active.log_format)
    logger.debug("knnvec logging initialized at %s", active.log_level)


def shutdown_library() -> None:
    """Remove the handler installed by :func:`init_library`."""
    global _log_handler
    with _init_lock:
        if _log_handler is None:
            return
        reset_logging(_log_handler)
        _log_handler = None


def library_initialized() -> bool:
    return _log_handler is not None


@dataclass(slots=True)
class ApplicationContainer:
    """Wired settings and bundle helpers for the CLI layer."""

    settings: Settings

    def new_handle(
        self,
        space: str | None = None,
        space_params: Iterable[str] | None = None,
        method: str | None = None,
    ) -> IndexHandle:
        return IndexHandle(
            space or self.settings.default_space,
            list(space_params or []),
            method or self.settings.default_method,
            settings=self.settings,
        )

    def resolve_bundle_dir(self, target: Path) -> Path:
        """Bare names resolve under the configured index directory."""
        target = Path(target)
        if target.is_absolute() or len(target.parts) > 1 or target.exists():
            return target
        return self.settings.get_index_dir() / target

    def save(self, handle: IndexHandle, directory: Path) -> Path:
        directory = self.resolve_bundle_dir(directory)
        save_bundle(handle, directory)
        return directory

    def open(self, directory: Path) -> IndexHandle:
        return load_bundle(self.resolve_bundle_dir(directory))


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Initialize the library and return the wired container."""
    active_settings = settings or get_settings()
    init_library(active_settings)
    return ApplicationContainer(settings=active_settings)
