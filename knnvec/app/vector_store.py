"""Append-only corpus of identified vectors."""

from __future__ import annotations

import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from knnvec.errors import (
    BoundsError,
    IndexFormatError,
    ParameterError,
    PersistenceError,
    StateError,
)


@dataclass(frozen=True, slots=True, eq=False)
class DataPoint:
    """A stored vector with its caller-supplied identifier and ordinal position."""

    identifier: int
    position: int
    vector: np.ndarray


class VectorStore:
    """Owns the inserted vectors of one index handle.

    Vectors are copied on insert and marked read-only. The store follows a
    single-writer-then-many-readers discipline: appends happen before the
    index is built, after which :meth:`freeze` rejects further writes. It is
    not internally locked.
    """

    def __init__(self, dim: int | None = None) -> None:
        self._dim = dim
        self._points: list[DataPoint] = []
        self._matrix: np.ndarray | None = None
        self._frozen = False

    @property
    def dim(self) -> int | None:
        return self._dim

    @property
    def size(self) -> int:
        return len(self._points)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject all further appends."""
        self._frozen = True

    def _check_writable(self, dim: int) -> None:
        if self._frozen:
            raise StateError(
                "Cannot add data points after the index has been built or loaded"
            )
        if self._dim is not None and dim != self._dim:
            raise ParameterError(
                f"Vector dimensionality {dim} does not match store dimension {self._dim}"
            )

    def append(self, identifier: int, vector: np.ndarray) -> int:
        """Store ``vector`` under ``identifier`` and return its position."""
        vector = np.array(vector, dtype=np.float32)
        if vector.ndim != 1:
            raise ParameterError(f"Vector must be 1-dimensional; got shape {vector.shape}")
        self._check_writable(vector.shape[0])

        vector.setflags(write=False)
        position = len(self._points)
        self._points.append(DataPoint(int(identifier), position, vector))
        self._dim = vector.shape[0]
        self._matrix = None
        return position

    def extend(self, identifiers: Sequence[int] | np.ndarray, vectors: np.ndarray) -> list[int]:
        """Append the rows of ``vectors`` with matching ``identifiers``."""
        matrix = np.array(vectors, dtype=np.float32)
        if matrix.ndim != 2:
            raise ParameterError(f"Vectors must be 2-dimensional; got shape {matrix.shape}")
        if len(identifiers) != matrix.shape[0]:
            raise ParameterError(
                f"ids contains {len(identifiers)} elements "
                f"whereas data contains {matrix.shape[0]} elements"
            )
        if matrix.shape[0] == 0:
            return []
        self._check_writable(matrix.shape[1])

        matrix.setflags(write=False)
        start = len(self._points)
        for offset, identifier in enumerate(identifiers):
            self._points.append(DataPoint(int(identifier), start + offset, matrix[offset]))
        self._dim = matrix.shape[1]
        self._matrix = None
        return list(range(start, start + matrix.shape[0]))

    def get(self, position: int) -> DataPoint:
        """Return the data point at ``position``."""
        if position < 0 or position >= len(self._points):
            raise BoundsError(
                f"The data point index should be >= 0 & < {len(self._points)}; got {position}"
            )
        return self._points[position]

    def vector(self, position: int) -> np.ndarray:
        return self.get(position).vector

    @property
    def identifiers(self) -> list[int]:
        return [point.identifier for point in self._points]

    def matrix(self) -> np.ndarray:
        """Return all vectors as one read-only ``(size, dim)`` snapshot."""
        if self._matrix is None:
            if self._points:
                matrix = np.vstack([point.vector for point in self._points])
            else:
                matrix = np.zeros((0, self._dim or 0), dtype=np.float32)
            matrix.setflags(write=False)
            self._matrix = matrix
        return self._matrix

    def save(self, path: Path) -> None:
        """Persist identifiers and vectors as a compressed ``.npz`` archive."""
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                np.savez_compressed(
                    handle,
                    ids=np.asarray(self.identifiers, dtype=np.int32),
                    vectors=self.matrix(),
                )
        except OSError as exc:
            raise PersistenceError(f"Cannot write vector store to {target}: {exc}") from exc

    @classmethod
    def load(cls, path: Path) -> "VectorStore":
        """Load a store previously written by :meth:`save`."""
        source = Path(path)
        if not source.exists():
            raise PersistenceError(f"Vector store not found: {source}")
        try:
            with np.load(source, allow_pickle=False) as archive:
                ids = archive["ids"]
                vectors = archive["vectors"]
        except (KeyError, ValueError, zipfile.BadZipFile) as exc:
            raise IndexFormatError(f"Corrupt vector store file {source}: {exc}") from exc

        store = cls(dim=int(vectors.shape[1]) if vectors.ndim == 2 and vectors.shape[1] else None)
        store.extend(ids, vectors)
        return store
