"""Space port interface for distance computation."""

from __future__ import annotations

from typing import Protocol

import numpy as np


class SpacePort(Protocol):
    """Port interface for a configured distance family.

    Adapters: Minkowski, cosine, angular, dot-product and KL-divergence spaces.

    Implementations are pure functions of their configuration and must be
    safe for unlimited concurrent calls. Non-metric spaces are allowed, so
    callers must not rely on symmetry or the triangle inequality.
    """

    name: str

    @property
    def params(self) -> list[str]:
        """Canonical ``key=value`` parameter list the space was built from."""
        ...

    @property
    def is_metric(self) -> bool:
        """True when the distance satisfies the metric axioms."""
        ...

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        """Return the distance from ``a`` (stored object) to ``b`` (query)."""
        ...

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        """Return the distance from each row of ``vectors`` to ``query``.

        Must agree with :meth:`distance` applied row by row.
        """
        ...
