"""Exact sequential-scan method.

Computes the distance to every stored point, so results are exact for any
space. Useful as a ground truth for the approximate methods and for small
corpora.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.knn_queue import KnnQuery
from knnvec.app.vector_store import DataPoint
from knnvec.errors import IndexFormatError
from knnvec.utils.atomic import atomic_write_json


class SeqSearchMethod(BaseMethod):
    """Brute-force scan; ties resolve in storage order."""

    name = "seq_search"
    requires_points = False

    def _build(self, config: Any) -> None:
        return None

    def _save_payload(self, path: Path) -> None:
        atomic_write_json(path, {"method": self.name, "count": len(self._points)})

    def _load_payload(self, path: Path, meta: dict[str, Any]) -> None:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise IndexFormatError(f"Corrupt sequential-search index {path}: {exc}") from exc
        if not isinstance(payload, dict) or payload.get("method") != self.name:
            raise IndexFormatError(f"{path} is not a sequential-search index")
        if payload.get("count") != len(self._points):
            raise IndexFormatError(
                f"{path} records {payload.get('count')!r} points; metadata says {len(self._points)}"
            )

    def _search(self, query: KnnQuery[DataPoint], config: Any) -> None:
        distances = query.distances_to(self._matrix)
        total = distances.shape[0]

        if query.k < total:
            # Only points at or inside the k-th smallest distance can survive;
            # keeping every tie preserves first-stored-wins ordering.
            kth = np.partition(distances, query.k - 1)[query.k - 1]
            positions = np.flatnonzero(distances <= kth)
        else:
            positions = np.arange(total)

        for position in positions:
            query.check_and_add(float(distances[position]), self._points[position])
