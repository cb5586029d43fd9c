"""Lifecycle shared by all index method adapters.

Subclasses implement the ``_parse_build_params`` / ``_build`` / ``_save_payload`` /
``_load_payload`` / ``_parse_query_params`` / ``_search`` hooks; this class enforces the state
machine (one build or restore per instance, Ready before persist, query
configuration and search) and writes the JSON sidecar that lets
:meth:`restore` detect an index built for another space or corpus.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from knnvec.app.knn_queue import KnnQuery
from knnvec.app.ports.method import IndexMethodPort
from knnvec.app.ports.space import SpacePort
from knnvec.app.vector_store import DataPoint, VectorStore
from knnvec.errors import (
    BuildError,
    IndexFormatError,
    KnnVecError,
    NotReadyError,
    ParamMismatchError,
    PersistenceError,
    StateError,
)
from knnvec.utils.atomic import atomic_write_json
from knnvec.utils.params import ParamSet

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def meta_path_for(path: Path) -> Path:
    """Return the sidecar metadata path for an index file."""
    path = Path(path)
    return path.with_suffix(path.suffix + ".meta.json")


class BaseMethod(IndexMethodPort):
    """Template for index methods bound to one space and store snapshot."""

    name = ""
    requires_points = True

    def __init__(
        self,
        space: SpacePort,
        store: VectorStore,
        *,
        print_progress: bool = False,
        progress_interval: int = 10_000,
    ) -> None:
        self._space = space
        self._store = store
        self._print_progress = print_progress
        self._progress_interval = max(1, int(progress_interval))
        self._points: tuple[DataPoint, ...] = ()
        self._matrix = store.matrix()
        self._query_config: Any = None
        self._attempted = False
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def space(self) -> SpacePort:
        return self._space

    @property
    def point_count(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        state = "ready" if self._ready else "uninitialized"
        return f"{type(self).__name__}(space={self._space.name!r}, points={len(self._store)}, {state})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _begin(self, operation: str) -> None:
        if self._attempted:
            raise StateError(
                f"{operation}() may run at most once per '{self.name}' index instance; "
                "create a new instance to rebuild"
            )
        self._attempted = True
        self._points = tuple(self._store.get(i) for i in range(len(self._store)))
        self._matrix = self._store.matrix()

    def _require_ready(self, operation: str) -> None:
        if not self._ready:
            raise NotReadyError(
                f"Cannot {operation}: the '{self.name}' index has not been built or loaded"
            )

    def build(self, params: ParamSet) -> None:
        self._begin("build")
        if self.requires_points and not self._points:
            raise BuildError(f"Method '{self.name}' cannot build an index over an empty corpus")

        config = self._parse_build_params(params)
        params.check_unused(f"method '{self.name}' build")

        start = time.perf_counter()
        self._build(config)
        self._install_query_config(self._parse_query_params(ParamSet()))
        self._ready = True
        logger.info(
            "Built '%s' index over %d points in %.3fs",
            self.name,
            len(self._points),
            time.perf_counter() - start,
        )

    def persist(self, path: Path) -> None:
        self._require_ready("save the index")
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._save_payload(target)
            atomic_write_json(meta_path_for(target), self._metadata())
        except KnnVecError:
            raise
        except OSError as exc:
            raise PersistenceError(f"Cannot write index to {target}: {exc}") from exc
        logger.info("Saved '%s' index to %s", self.name, target)

    def restore(self, path: Path) -> None:
        source = Path(path)
        meta_path = meta_path_for(source)
        if not source.exists():
            raise PersistenceError(f"Index file not found: {source}")
        if not meta_path.exists():
            raise PersistenceError(f"Index metadata missing: {meta_path}")

        self._begin("restore")
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise IndexFormatError(f"Corrupt index metadata {meta_path}: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot read index metadata {meta_path}: {exc}") from exc
        if not isinstance(meta, dict):
            raise IndexFormatError(f"Index metadata {meta_path} is not a JSON object")

        self._check_metadata(meta)
        try:
            self._load_payload(source, meta)
        except KnnVecError:
            raise
        except OSError as exc:
            raise PersistenceError(f"Cannot read index file {source}: {exc}") from exc
        self._install_query_config(self._parse_query_params(ParamSet()))
        self._ready = True
        logger.info("Loaded '%s' index from %s", self.name, source)

    def set_query_params(self, params: ParamSet) -> None:
        self._require_ready("set query-time parameters")
        config = self._parse_query_params(params)
        params.check_unused(f"method '{self.name}' query-time")
        self._install_query_config(config)

    def search(self, query: KnnQuery[DataPoint]) -> None:
        self._require_ready("search")
        if not self._points:
            return
        # Read once so a concurrent reconfiguration cannot tear this search.
        self._search(query, self._query_config)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _metadata(self) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "method": self.name,
            "space": self._space.name,
            "space_params": list(self._space.params),
            "dim": self._store.dim,
            "count": len(self._store),
        }

    def _check_metadata(self, meta: dict[str, Any]) -> None:
        if meta.get("format_version") != FORMAT_VERSION:
            raise IndexFormatError(
                f"Unsupported index format version {meta.get('format_version')!r}"
            )
        expected = self._metadata()
        for key in ("method", "space", "space_params", "dim", "count"):
            if meta.get(key) != expected[key]:
                raise ParamMismatchError(
                    f"Stored {key} {meta.get(key)!r} does not match expected {expected[key]!r}"
                )

    def _report_progress(self, done: int) -> None:
        if self._print_progress and done % self._progress_interval == 0:
            logger.info("'%s' build: %d/%d points inserted", self.name, done, len(self._points))

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _parse_build_params(self, params: ParamSet) -> Any:
        return None

    def _build(self, config: Any) -> None:
        raise NotImplementedError

    def _save_payload(self, path: Path) -> None:
        raise NotImplementedError

    def _load_payload(self, path: Path, meta: dict[str, Any]) -> None:
        raise NotImplementedError

    def _parse_query_params(self, params: ParamSet) -> Any:
        return None

    def _install_query_config(self, config: Any) -> None:
        self._query_config = config

    def _search(self, query: KnnQuery[DataPoint], config: Any) -> None:
        raise NotImplementedError
