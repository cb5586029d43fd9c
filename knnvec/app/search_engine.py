"""Single-query kNN search over a Ready index method."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from knnvec.app.knn_queue import KnnQuery
from knnvec.app.ports.method import IndexMethodPort
from knnvec.app.ports.space import SpacePort
from knnvec.app.vector_store import DataPoint, VectorStore
from knnvec.errors import ParameterError


@dataclass(slots=True)
class Neighbor:
    """One ordered search result."""

    identifier: int
    distance: float
    position: int


class KnnSearchEngine:
    """Runs one query against an index and returns its neighbors nearest-first.

    Holds no per-query state, so one engine can serve many threads at once
    provided the method is Ready and nobody reconfigures it mid-search.
    """

    def __init__(self, method: IndexMethodPort, space: SpacePort, store: VectorStore) -> None:
        self._method = method
        self._space = space
        self._store = store

    @property
    def method(self) -> IndexMethodPort:
        return self._method

    def search(self, vector: np.ndarray, k: int) -> list[Neighbor]:
        """Return up to ``k`` neighbors of ``vector``, closest first.

        Raises:
            ParameterError: If ``k < 1`` or ``vector`` has the wrong dimensionality.
            NotReadyError: If the method has not been built or loaded.
        """
        if k < 1:
            raise ParameterError(f"k ({k}) should be >=1")
        vector = np.asarray(vector, dtype=np.float32)
        dim = self._store.dim
        if vector.ndim != 1 or (dim is not None and vector.shape[0] != dim):
            raise ParameterError(
                f"Query vector must have shape ({dim},); got {vector.shape}"
            )

        query: KnnQuery[DataPoint] = KnnQuery(self._space, vector, k)
        self._method.search(query)
        return [
            Neighbor(identifier=point.identifier, distance=distance, position=point.position)
            for distance, point in query.result.drain()
        ]

    def query_ids(self, vector: np.ndarray, k: int) -> list[int]:
        return [neighbor.identifier for neighbor in self.search(vector, k)]
