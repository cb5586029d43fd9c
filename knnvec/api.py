"""Host-facing function surface.

Every function takes the opaque :class:`IndexToken` returned by
:func:`create_index` and resolves it against a module-level registry on each
call, so a token used after :func:`free_index` fails with
:class:`~knnvec.errors.StaleHandleError` instead of touching freed state.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import numpy as np

from knnvec.app.codec import DataType, DistType
from knnvec.app.handle import IndexHandle
from knnvec.app.registry import HandleRegistry, IndexToken

_registry = HandleRegistry()


def get_registry() -> HandleRegistry:
    return _registry


def create_index(
    space_name: str,
    space_params: Iterable[str] | str | None = None,
    method_name: str = "hnsw",
    data_type: DataType | int = DataType.VECTOR,
    dist_type: DistType | int = DistType.FLOAT,
) -> IndexToken:
    """Create an empty index and return its token."""
    handle = IndexHandle(space_name, space_params, method_name, data_type, dist_type)
    return _registry.register(handle)


def add_point(token: IndexToken, identifier: int, vector: Any) -> int:
    return _registry.resolve(token).add_data_point(identifier, vector)


def add_points_batch(token: IndexToken, identifiers: Any, vectors: Any) -> list[int]:
    return _registry.resolve(token).add_data_point_batch(identifiers, vectors)


def build_index(token: IndexToken, build_params: Iterable[str] | str | None = None) -> None:
    _registry.resolve(token).create_index(build_params)


def save_index(token: IndexToken, path: str | Path) -> None:
    _registry.resolve(token).save_index(path)


def load_index(token: IndexToken, path: str | Path) -> None:
    _registry.resolve(token).load_index(path)


def set_query_params(token: IndexToken, params: Iterable[str] | str | None = None) -> None:
    _registry.resolve(token).set_query_time_params(params)


def knn_query(token: IndexToken, k: int, vector: Any) -> list[int]:
    """Identifiers of the ``k`` nearest points, closest first."""
    return _registry.resolve(token).knn_query(k, vector)


def knn_query_batch(
    token: IndexToken, num_threads: int | None, k: int, vectors: Any
) -> np.ndarray:
    """``(rows, k)`` int32 matrix of neighbor ids; short rows are padded."""
    return _registry.resolve(token).knn_query_batch(num_threads, k, vectors)


def get_point(token: IndexToken, position: int) -> list[float]:
    return _registry.resolve(token).get_data_point(position)


def get_point_count(token: IndexToken) -> int:
    return _registry.resolve(token).get_data_point_qty()


def free_index(token: IndexToken) -> None:
    """Release the index; ``token`` is invalid afterwards."""
    _registry.release(token)


__all__ = [
    "add_point",
    "add_points_batch",
    "build_index",
    "create_index",
    "free_index",
    "get_point",
    "get_point_count",
    "get_registry",
    "knn_query",
    "knn_query_batch",
    "load_index",
    "save_index",
    "set_query_params",
]
