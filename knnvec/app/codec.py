"""Marshaling between host values and the float32 buffers the core stores.

Readers and writers are keyed by :class:`DataType`, mirroring how the core
dispatches on the data encoding tag carried by every index handle.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum
from typing import Any

import numpy as np

from knnvec.errors import ParameterError

_INT32_MIN = np.iinfo(np.int32).min
_INT32_MAX = np.iinfo(np.int32).max


class DataType(IntEnum):
    """Encoding of the objects stored in an index."""

    VECTOR = 1
    STRING = 2


class DistType(IntEnum):
    """Value type of the distances an index computes."""

    FLOAT = 4
    INT = 5


def _as_real_array(data: Any, *, what: str) -> np.ndarray:
    if isinstance(data, (str, bytes)):
        raise ParameterError(f"{what} must be numeric; got {type(data).__name__}")
    try:
        array = np.asarray(data)
    except ValueError as exc:  # ragged nested sequences
        raise ParameterError(f"{what} rows must all have the same length") from exc
    if array.dtype == object:
        raise ParameterError(f"{what} rows must all have the same length and hold numbers")
    if array.dtype.kind not in "biuf":
        raise ParameterError(f"{what} must hold real numbers; got dtype {array.dtype}")
    return array


def read_vector(data: Any) -> np.ndarray:
    """Convert ``data`` into a 1-D float32 vector."""
    array = _as_real_array(data, what="Vector")
    if array.ndim != 1:
        raise ParameterError(f"Vector must be 1-dimensional; got shape {array.shape}")
    if array.shape[0] == 0:
        raise ParameterError("Vector must not be empty")
    return np.array(array, dtype=np.float32)


def read_matrix(data: Any) -> np.ndarray:
    """Convert ``data`` into a C-ordered 2-D float32 matrix.

    Fortran-ordered arrays are rejected rather than silently copied, matching
    the row-major layout the batch operations require.
    """
    if isinstance(data, np.ndarray) and data.ndim == 2:
        if not data.flags.c_contiguous and data.flags.f_contiguous:
            raise ParameterError("The order of data should be C (row-major), not Fortran")
    array = _as_real_array(data, what="Matrix")
    if array.ndim != 2:
        raise ParameterError(f"Matrix must be 2-dimensional; got shape {array.shape}")
    return np.ascontiguousarray(array, dtype=np.float32)


def read_ids(ids: Any) -> np.ndarray:
    """Convert ``ids`` into a 1-D int32 identifier array."""
    array = _as_real_array(ids, what="Identifiers")
    if array.ndim != 1:
        raise ParameterError(f"Identifiers must be 1-dimensional; got shape {array.shape}")
    if array.dtype.kind == "f":
        if array.size and not np.all(np.equal(np.mod(array, 1), 0)):
            raise ParameterError("Identifiers must be integers")
    if array.size and (array.min() < _INT32_MIN or array.max() > _INT32_MAX):
        raise ParameterError("Identifiers must fit in a signed 32-bit integer")
    return array.astype(np.int32)


def read_id(identifier: Any) -> int:
    """Validate a single identifier."""
    if isinstance(identifier, bool) or not isinstance(identifier, (int, np.integer)):
        raise ParameterError(f"Identifier must be an integer; got {identifier!r}")
    value = int(identifier)
    if value < _INT32_MIN or value > _INT32_MAX:
        raise ParameterError(f"Identifier {value} does not fit in a signed 32-bit integer")
    return value


def read_position(position: Any) -> int:
    """Validate a data point position; range checks belong to the store."""
    if isinstance(position, bool) or not isinstance(position, (int, np.integer)):
        raise ParameterError(f"Position must be an integer; got {position!r}")
    return int(position)


def write_vector(vector: np.ndarray) -> list[float]:
    """Convert a stored vector back into a plain list of floats."""
    return [float(value) for value in vector]


DATA_READERS: dict[DataType, Callable[[Any], np.ndarray]] = {
    DataType.VECTOR: read_vector,
}

DATA_WRITERS: dict[DataType, Callable[[np.ndarray], Any]] = {
    DataType.VECTOR: write_vector,
}


def reader_for(data_type: DataType) -> Callable[[Any], np.ndarray]:
    try:
        return DATA_READERS[data_type]
    except KeyError as exc:
        raise ParameterError(f"unknown data type - {data_type!r}") from exc


def writer_for(data_type: DataType) -> Callable[[np.ndarray], Any]:
    try:
        return DATA_WRITERS[data_type]
    except KeyError as exc:
        raise ParameterError(f"unknown data type - {data_type!r}") from exc
