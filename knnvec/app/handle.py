"""Index handle: the façade the host-facing API drives.

A handle owns one vector store, one space and at most one live index method.
Points are added first; :meth:`IndexHandle.create_index` or
:meth:`IndexHandle.load_index` then produce a Ready method over a snapshot of
the store, after which the handle answers queries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.adapters.methods import create_method, ensure_method
from knnvec.app.adapters.spaces import create_space
from knnvec.app.batch import BatchQueryScheduler
from knnvec.app.codec import (
    DataType,
    DistType,
    read_id,
    read_ids,
    read_matrix,
    read_position,
    reader_for,
    writer_for,
)
from knnvec.app.ports.space import SpacePort
from knnvec.app.search_engine import KnnSearchEngine, Neighbor
from knnvec.app.vector_store import VectorStore
from knnvec.config import Settings, get_settings
from knnvec.errors import NotReadyError, ParameterError, StateError
from knnvec.utils.params import ParamSet

logger = logging.getLogger(__name__)


def _coerce_data_type(value: Any) -> DataType:
    try:
        data_type = DataType(value)
    except ValueError as exc:
        raise ParameterError(f"unknown data type - {value!r}") from exc
    if data_type is not DataType.VECTOR:
        raise ParameterError(
            f"Data type {data_type.name} is not supported; only VECTOR data can be indexed"
        )
    return data_type


def _coerce_dist_type(value: Any) -> DistType:
    try:
        dist_type = DistType(value)
    except ValueError as exc:
        raise ParameterError(f"unknown distance type - {value!r}") from exc
    if dist_type is DistType.INT:
        raise ParameterError(
            "This version is optimized for vectors with float distances. "
            "Use the generic (non-vector) bindings for integer distances."
        )
    return dist_type


class IndexHandle:
    """Store, space and index method for one logical index."""

    def __init__(
        self,
        space_name: str,
        space_params: Iterable[str] | str | None = None,
        method_name: str = "hnsw",
        data_type: DataType | int = DataType.VECTOR,
        dist_type: DistType | int = DistType.FLOAT,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._dist_type = _coerce_dist_type(dist_type)
        self._data_type = _coerce_data_type(data_type)
        self._space = create_space(space_name, space_params)
        ensure_method(method_name)

        self._settings = settings
        self._space_name = space_name
        self._method_name = method_name
        self._store = VectorStore()
        self._method: BaseMethod | None = None
        self._engine: KnnSearchEngine | None = None
        self._build_params: list[str] = []
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"IndexHandle(space={self._space_name!r}, method={self._method_name!r}, "
            f"points={len(self._store)}, ready={self.is_ready})"
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings if self._settings is not None else get_settings()

    @property
    def space(self) -> SpacePort:
        return self._space

    @property
    def store(self) -> VectorStore:
        return self._store

    @property
    def method_name(self) -> str:
        return self._method_name

    @property
    def space_name(self) -> str:
        return self._space_name

    @property
    def data_type(self) -> DataType:
        return self._data_type

    @property
    def dist_type(self) -> DistType:
        return self._dist_type

    @property
    def build_params(self) -> list[str]:
        """Parameters of the last successful :meth:`create_index` call."""
        return list(self._build_params)

    @property
    def is_ready(self) -> bool:
        return self._method is not None and self._method.is_ready

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise StateError("The index handle has been closed")

    def _require_engine(self, operation: str) -> KnnSearchEngine:
        self._check_open()
        if self._engine is None:
            raise NotReadyError(f"Cannot {operation}: call create_index() or load_index() first")
        return self._engine

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def add_data_point(self, identifier: int, data: Any) -> int:
        """Add one vector and return its position."""
        self._check_open()
        identifier = read_id(identifier)
        vector = reader_for(self._data_type)(data)
        return self._store.append(identifier, vector)

    def add_data_point_batch(self, identifiers: Any, data: Any) -> list[int]:
        """Add the rows of ``data`` under ``identifiers``; returns their positions."""
        self._check_open()
        ids = read_ids(identifiers)
        matrix = read_matrix(data)
        positions = self._store.extend(ids, matrix)
        logger.debug("Added %d data points (total %d)", len(positions), len(self._store))
        return positions

    def get_data_point(self, position: int) -> Any:
        self._check_open()
        return writer_for(self._data_type)(self._store.vector(read_position(position)))

    def get_data_point_qty(self) -> int:
        self._check_open()
        return len(self._store)

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def _fresh_method(self) -> BaseMethod:
        settings = self.settings
        return create_method(
            self._method_name,
            self._space,
            self._store,
            print_progress=settings.print_progress,
            progress_interval=settings.progress_interval,
        )

    def _install(self, method: BaseMethod | None) -> None:
        self._method = method
        self._engine = (
            KnnSearchEngine(method, self._space, self._store) if method is not None else None
        )

    def create_index(self, params: Iterable[str] | str | None = None) -> None:
        """Build a new index over the current store contents."""
        self._check_open()
        self._install(None)
        parsed = ParamSet.parse(params)
        method = self._fresh_method()
        method.build(parsed)
        self._store.freeze()
        self._install(method)
        self._build_params = parsed.as_list()

    def load_index(self, path: str | Path, *, build_params: Iterable[str] | None = None) -> None:
        """Restore an index written by :meth:`save_index` for this store.

        ``build_params`` optionally records how the saved index was built.
        """
        self._check_open()
        self._install(None)
        method = self._fresh_method()
        method.restore(Path(path))
        self._store.freeze()
        self._install(method)
        self._build_params = list(build_params or [])

    def save_index(self, path: str | Path) -> None:
        self._check_open()
        if self._method is None:
            raise NotReadyError("Cannot save the index: call create_index() or load_index() first")
        self._method.persist(Path(path))

    def set_query_time_params(self, params: Iterable[str] | str | None = None) -> None:
        """Replace query-time parameters; callers serialize this against queries."""
        self._check_open()
        if self._method is None:
            raise NotReadyError(
                "Cannot set query-time parameters: call create_index() or load_index() first"
            )
        self._method.set_query_params(ParamSet.parse(params))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _worker_count(self, num_threads: int | None) -> int:
        return self.settings.num_threads if num_threads is None else num_threads

    def knn_query_neighbors(self, k: int, data: Any) -> list[Neighbor]:
        engine = self._require_engine("query")
        return engine.search(reader_for(self._data_type)(data), k)

    def knn_query(self, k: int, data: Any) -> list[int]:
        """Return identifiers of the ``k`` nearest stored points, closest first."""
        return [neighbor.identifier for neighbor in self.knn_query_neighbors(k, data)]

    def knn_query_batch(self, num_threads: int | None, k: int, data: Any) -> np.ndarray:
        """Answer every row of ``data``; returns an int32 ``(rows, k)`` matrix.

        Rows with fewer than ``k`` results are padded with the configured
        ``batch_pad_value``.
        """
        engine = self._require_engine("query")
        if k < 1:
            raise ParameterError(f"k ({k}) should be >=1")
        queries = read_matrix(data)
        rows = BatchQueryScheduler(engine, self._worker_count(num_threads)).run(queries, k)

        output = np.full((len(rows), k), self.settings.batch_pad_value, dtype=np.int32)
        for row, ids in enumerate(rows):
            output[row, : len(ids)] = ids
        return output

    def knn_query_batch_lists(
        self, num_threads: int | None, k: int, data: Sequence[Any] | np.ndarray
    ) -> list[list[int]]:
        """Like :meth:`knn_query_batch` but returns unpadded lists."""
        engine = self._require_engine("query")
        scheduler = BatchQueryScheduler(engine, self._worker_count(num_threads))
        return scheduler.run(read_matrix(data), k)

    def close(self) -> None:
        """Drop the index and reject further use. Idempotent."""
        if self._closed:
            return
        self._install(None)
        self._closed = True
