"""Bounded result queue used by every kNN search.

The queue keeps the ``k`` closest candidates seen so far in a max-heap keyed
by distance, so the worst retained candidate is always on top and can be
evicted in O(log k). Its natural pop order is therefore farthest-first;
:meth:`KnnQueue.drain` reverses that into the nearest-first order callers get.
"""

from __future__ import annotations

import heapq
import math
from collections.abc import Iterator
from typing import Generic, TypeVar

import numpy as np

from knnvec.app.ports.space import SpacePort
from knnvec.errors import ParameterError

T = TypeVar("T")


class KnnQueue(Generic[T]):
    """Fixed-capacity max-heap retaining the ``capacity`` smallest distances.

    Ties are broken by discovery order: among equal distances the candidate
    pushed first ranks closer, and a later candidate at the same distance as a
    full queue's maximum is rejected.
    """

    __slots__ = ("_capacity", "_heap", "_seq")

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ParameterError(f"k ({capacity}) should be >=1")
        self._capacity = capacity
        # heapq is a min-heap, so keys are negated: (-distance, -seq, item)
        self._heap: list[tuple[float, int, T]] = []
        self._seq = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._heap)

    def empty(self) -> bool:
        return not self._heap

    def full(self) -> bool:
        return len(self._heap) >= self._capacity

    def top_distance(self) -> float:
        """Distance of the farthest retained candidate."""
        if not self._heap:
            raise IndexError("top_distance() on an empty KnnQueue")
        return -self._heap[0][0]

    def top_item(self) -> T:
        if not self._heap:
            raise IndexError("top_item() on an empty KnnQueue")
        return self._heap[0][2]

    def push(self, distance: float, item: T) -> bool:
        """Offer a candidate; return True if it was retained."""
        distance = float(distance)
        seq = self._seq
        self._seq += 1
        entry = (-distance, -seq, item)
        if len(self._heap) < self._capacity:
            heapq.heappush(self._heap, entry)
            return True
        # Strictly better than the current maximum, comparing (distance, seq).
        if entry[:2] > self._heap[0][:2]:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def pop(self) -> tuple[float, T]:
        """Remove and return the farthest retained candidate."""
        if not self._heap:
            raise IndexError("pop() on an empty KnnQueue")
        neg_distance, _, item = heapq.heappop(self._heap)
        return -neg_distance, item

    def clone(self) -> "KnnQueue[T]":
        copy: KnnQueue[T] = KnnQueue(self._capacity)
        copy._heap = list(self._heap)
        copy._seq = self._seq
        return copy

    def drain(self) -> list[tuple[float, T]]:
        """Empty the queue, returning entries nearest-first."""
        ordered: list[tuple[float, T]] = []
        while self._heap:
            ordered.append(self.pop())
        ordered.reverse()
        return ordered

    def __iter__(self) -> Iterator[tuple[float, T]]:
        """Iterate nearest-first without consuming the queue."""
        return iter(self.clone().drain())


class KnnQuery(Generic[T]):
    """One kNN request: the query vector, ``k``, and its result queue.

    Index methods call :meth:`check_and_add` for every candidate they
    evaluate; the query owns all per-search mutable state so concurrent
    searches against one index never share scratch space.
    """

    def __init__(self, space: SpacePort, vector: np.ndarray, k: int) -> None:
        self.space = space
        self.vector = vector
        self.k = k
        self.result: KnnQueue[T] = KnnQueue(k)
        self.distance_computations = 0

    @property
    def radius(self) -> float:
        """Current pruning radius: worst retained distance once full, else infinity."""
        if self.result.full():
            return self.result.top_distance()
        return math.inf

    def distance_to(self, vector: np.ndarray) -> float:
        self.distance_computations += 1
        return self.space.distance(vector, self.vector)

    def distances_to(self, vectors: np.ndarray) -> np.ndarray:
        self.distance_computations += int(vectors.shape[0])
        return self.space.distances(self.vector, vectors)

    def check_and_add(self, distance: float, item: T) -> bool:
        """Offer ``item`` to the result queue if it can improve it."""
        if distance > self.radius:
            return False
        return self.result.push(distance, item)
