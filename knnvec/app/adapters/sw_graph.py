"""Navigable small-world graph method.

Points are inserted one at a time; each new point is linked in both
directions to the ``NN`` closest points a best-first search over the graph
built so far can find. Queries run the same best-first traversal from
pseudo-random entry points. Only the bound space's distance is used, so the
method works for non-metric spaces too.
"""

from __future__ import annotations

import heapq
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.knn_queue import KnnQuery
from knnvec.app.vector_store import DataPoint
from knnvec.errors import IndexFormatError
from knnvec.utils.atomic import atomic_write_json
from knnvec.utils.params import ParamSet


@dataclass(frozen=True, slots=True)
class SwGraphBuildConfig:
    nn: int
    ef_construction: int
    index_attempts: int
    seed: int


@dataclass(frozen=True, slots=True)
class SwGraphQueryConfig:
    ef_search: int
    search_attempts: int


class SmallWorldGraphMethod(BaseMethod):
    """Approximate search over an incrementally built proximity graph."""

    name = "sw-graph"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._neighbors: list[list[int]] = []
        self._nn = 10
        self._seed = 0

    def _parse_build_params(self, params: ParamSet) -> SwGraphBuildConfig:
        nn = params.get_int("NN", default=10, minimum=1)
        return SwGraphBuildConfig(
            nn=nn,
            ef_construction=params.get_int("efConstruction", default=nn, minimum=1),
            index_attempts=params.get_int("initIndexAttempts", default=1, minimum=1),
            seed=params.get_int("randomSeed", default=0, minimum=0),
        )

    def _parse_query_params(self, params: ParamSet) -> SwGraphQueryConfig:
        return SwGraphQueryConfig(
            ef_search=params.get_int("efSearch", "ef", default=self._nn, minimum=1),
            search_attempts=params.get_int("initSearchAttempts", default=1, minimum=1),
        )

    def _build(self, config: SwGraphBuildConfig) -> None:
        self._nn = config.nn
        self._seed = config.seed
        rng = np.random.default_rng(config.seed)
        matrix = self._matrix
        neighbors: list[list[int]] = [[] for _ in self._points]

        for position in range(1, len(self._points)):
            target = matrix[position]
            entries = rng.integers(0, position, size=config.index_attempts)
            nearest = self._traverse(
                neighbors,
                lambda nodes, target=target: self._space.distances(target, matrix[nodes]),
                entries,
                config.ef_construction,
            )
            for _, node in nearest[: config.nn]:
                neighbors[position].append(node)
                neighbors[node].append(position)
            self._report_progress(position + 1)

        self._neighbors = neighbors

    @staticmethod
    def _traverse(
        neighbors: list[list[int]],
        distances: Callable[[np.ndarray], np.ndarray],
        entries: Iterable[int],
        ef: int,
        visit: Callable[[float, int], Any] | None = None,
    ) -> list[tuple[float, int]]:
        """Best-first search; returns up to ``ef`` closest (distance, node) pairs ascending.

        ``visit`` sees every evaluated node in discovery order.
        """
        visited: set[int] = set()
        candidates: list[tuple[float, int]] = []
        closest: list[tuple[float, int]] = []  # max-heap via negated distance

        def offer(distance: float, node: int) -> None:
            if visit is not None:
                visit(distance, node)
            if len(closest) < ef or distance < -closest[0][0]:
                heapq.heappush(candidates, (distance, node))
                heapq.heappush(closest, (-distance, node))
                if len(closest) > ef:
                    heapq.heappop(closest)

        for entry in entries:
            entry = int(entry)
            if entry in visited:
                continue
            visited.add(entry)
            offer(float(distances(np.asarray([entry]))[0]), entry)

            while candidates:
                distance, node = heapq.heappop(candidates)
                if len(closest) >= ef and distance > -closest[0][0]:
                    break
                fresh = [nb for nb in neighbors[node] if nb not in visited]
                if not fresh:
                    continue
                visited.update(fresh)
                for nb, nb_distance in zip(fresh, distances(np.asarray(fresh)), strict=True):
                    offer(float(nb_distance), nb)

        return sorted((-neg, node) for neg, node in closest)

    def _search(self, query: KnnQuery[DataPoint], config: SwGraphQueryConfig) -> None:
        points = self._points
        matrix = self._matrix
        # Fresh generator per search: deterministic and never shared across threads.
        entries = np.random.default_rng(self._seed + 1).integers(
            0, len(points), size=config.search_attempts
        )
        self._traverse(
            self._neighbors,
            lambda nodes: query.distances_to(matrix[nodes]),
            entries,
            max(config.ef_search, query.k),
            visit=lambda distance, node: query.check_and_add(distance, points[node]),
        )

    def _save_payload(self, path: Path) -> None:
        atomic_write_json(
            path,
            {
                "method": self.name,
                "NN": self._nn,
                "randomSeed": self._seed,
                "neighbors": self._neighbors,
            },
        )

    def _load_payload(self, path: Path, meta: dict[str, Any]) -> None:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise IndexFormatError(f"Corrupt small-world graph {path}: {exc}") from exc
        if not isinstance(payload, dict) or payload.get("method") != self.name:
            raise IndexFormatError(f"{path} is not a small-world graph index")

        neighbors = payload.get("neighbors")
        nn = payload.get("NN")
        seed = payload.get("randomSeed")
        count = len(self._points)
        if not isinstance(nn, int) or not isinstance(seed, int) or not isinstance(neighbors, list):
            raise IndexFormatError(f"Small-world graph {path} is missing required fields")
        if len(neighbors) != count:
            raise IndexFormatError(
                f"Small-world graph {path} has {len(neighbors)} nodes; expected {count}"
            )
        for adjacency in neighbors:
            if not isinstance(adjacency, list) or any(
                not isinstance(node, int) or node < 0 or node >= count for node in adjacency
            ):
                raise IndexFormatError(f"Small-world graph {path} has an invalid adjacency list")

        self._neighbors = neighbors
        self._nn = nn
        self._seed = seed
