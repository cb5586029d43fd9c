"""hnswlib-backed HNSW method.

hnswlib only understands ``l2``, ``cosine`` and ``ip``; candidates it returns
are re-scored with the bound space so reported distances always follow this
library's definitions (true L2 rather than squared, ``1 - cos``, negated dot).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.knn_queue import KnnQuery
from knnvec.app.vector_store import DataPoint
from knnvec.errors import (
    BuildError,
    IndexFormatError,
    InvalidParameterError,
    ParamMismatchError,
    PersistenceError,
    SearchError,
)
from knnvec.utils.params import ParamSet

HNSWLIB_SPACES = {
    "l2": "l2",
    "cosinesimil": "cosine",
    "negdotprod": "ip",
}

_ADD_CHUNK = 4096


@dataclass(frozen=True, slots=True)
class HnswBuildConfig:
    m: int
    ef_construction: int
    threads: int
    seed: int


@dataclass(frozen=True, slots=True)
class HnswQueryConfig:
    ef: int


class HnswMethod(BaseMethod):
    """Hierarchical navigable small-world graph via hnswlib."""

    name = "hnsw"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        if self._space.name not in HNSWLIB_SPACES:
            raise InvalidParameterError(
                f"Method 'hnsw' does not support space '{self._space.name}'; "
                f"supported: {', '.join(sorted(HNSWLIB_SPACES))}"
            )
        self._index: Any | None = None

    def _new_index(self) -> Any:
        try:
            import hnswlib
        except ImportError as exc:  # pragma: no cover - dependency missing runtime path
            raise BuildError(
                "hnswlib is required for the 'hnsw' method. Install it with 'pip install hnswlib'."
            ) from exc
        return hnswlib.Index(space=HNSWLIB_SPACES[self._space.name], dim=int(self._store.dim))

    def _parse_build_params(self, params: ParamSet) -> HnswBuildConfig:
        return HnswBuildConfig(
            m=params.get_int("M", default=16, minimum=2),
            ef_construction=params.get_int("efConstruction", default=200, minimum=1),
            threads=params.get_int("indexThreadQty", default=1, minimum=1),
            seed=params.get_int("randomSeed", default=100, minimum=0),
        )

    def _parse_query_params(self, params: ParamSet) -> HnswQueryConfig:
        return HnswQueryConfig(ef=params.get_int("efSearch", "ef", default=10, minimum=1))

    def _install_query_config(self, config: HnswQueryConfig) -> None:
        if self._index is not None:
            self._index.set_ef(config.ef)
        super()._install_query_config(config)

    def _build(self, config: HnswBuildConfig) -> None:
        index = self._new_index()
        total = self._matrix.shape[0]
        try:
            index.init_index(
                max_elements=total,
                ef_construction=config.ef_construction,
                M=config.m,
                random_seed=config.seed,
            )
            index.set_num_threads(config.threads)
            for start in range(0, total, _ADD_CHUNK):
                stop = min(start + _ADD_CHUNK, total)
                index.add_items(self._matrix[start:stop], np.arange(start, stop))
                self._report_progress(stop)
        except RuntimeError as exc:
            raise BuildError(f"hnswlib failed to build the index: {exc}") from exc
        self._index = index

    def _save_payload(self, path: Path) -> None:
        try:
            self._index.save_index(str(path))
        except RuntimeError as exc:
            raise PersistenceError(f"hnswlib could not save {path}: {exc}") from exc

    def _load_payload(self, path: Path, meta: dict[str, Any]) -> None:
        index = self._new_index()
        count = len(self._points)
        try:
            index.load_index(str(path), max_elements=count)
        except RuntimeError as exc:
            raise IndexFormatError(f"hnswlib could not load {path}: {exc}") from exc
        if index.get_current_count() != count:
            raise ParamMismatchError(
                f"HNSW file {path} holds {index.get_current_count()} points; expected {count}"
            )
        self._index = index

    def _search(self, query: KnnQuery[DataPoint], config: HnswQueryConfig) -> None:
        k = min(query.k, len(self._points))
        vector = np.asarray(query.vector, dtype=np.float32).reshape(1, -1)
        try:
            labels, _ = self._index.knn_query(vector, k=k, num_threads=1)
        except RuntimeError as exc:
            raise SearchError(f"hnswlib failed to answer the query: {exc}") from exc
        positions = labels[0].astype(np.int64)
        distances = query.distances_to(self._matrix[positions])
        # hnswlib orders by its own metric; re-sort so ties keep storage order.
        order = np.lexsort((positions, distances))
        for i in order:
            query.check_and_add(float(distances[i]), self._points[positions[i]])
