"""Parallel batch kNN querying with a fixed worker pool.

The queries are placed on a shared work list before any worker starts. Each
worker repeatedly takes one query under a lock, searches outside the lock and
writes the result into the slot matching the query's position, so output
order never depends on scheduling.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, TypeVar

import numpy as np

from knnvec.app.search_engine import KnnSearchEngine, Neighbor
from knnvec.config import get_settings
from knnvec.errors import ParameterError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def resolve_worker_count(num_threads: int | None, query_count: int) -> int:
    """Apply the worker-count policy: reject < 1, clamp to ``query_count``."""
    if num_threads is None:
        num_threads = get_settings().num_threads
    if isinstance(num_threads, bool) or not isinstance(num_threads, (int, np.integer)):
        raise ParameterError(f"num_threads must be an integer; got {num_threads!r}")
    if num_threads < 1:
        raise ParameterError(f"num_threads ({num_threads}) should be >=1")
    return max(1, min(int(num_threads), query_count))


class BatchQueryScheduler:
    """Answers many queries against one engine with ``num_threads`` workers."""

    def __init__(self, engine: KnnSearchEngine, num_threads: int | None = None) -> None:
        self._engine = engine
        self._num_threads = num_threads

    def run(self, queries: Sequence[np.ndarray] | np.ndarray, k: int) -> list[list[int]]:
        """Return one identifier list per query, in query order."""
        return self._run(queries, lambda vector: self._engine.query_ids(vector, k), k)

    def run_neighbors(
        self, queries: Sequence[np.ndarray] | np.ndarray, k: int
    ) -> list[list[Neighbor]]:
        return self._run(queries, lambda vector: self._engine.search(vector, k), k)

    def _run(
        self,
        queries: Sequence[np.ndarray] | np.ndarray,
        search: Callable[[np.ndarray], R],
        k: int,
    ) -> list[R]:
        if k < 1:
            raise ParameterError(f"k ({k}) should be >=1")
        total = len(queries)
        workers = resolve_worker_count(self._num_threads, total)
        if total == 0:
            return []

        pending: deque[tuple[int, Any]] = deque(enumerate(queries))
        lock = threading.Lock()
        results: list[Any] = [None] * total

        def worker() -> None:
            while True:
                with lock:
                    if not pending:
                        return
                    position, vector = pending.popleft()
                results[position] = search(vector)

        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="knnvec-batch") as executor:
            futures = [executor.submit(worker) for _ in range(workers)]
            wait(futures)

        for future in futures:
            error = future.exception()
            if error is not None:
                raise error

        logger.debug(
            "Answered %d queries with %d workers in %.3fs",
            total,
            workers,
            time.perf_counter() - start,
        )
        return results
