"""Concrete distance spaces and the registry that creates them by name.

Space names follow the Non-Metric Space Library conventions (``l2``,
``cosinesimil``, ``negdotprod`` ...), so parameter lists written for that
library keep working.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable

import numpy as np

from knnvec.app.ports.space import SpacePort
from knnvec.errors import InvalidParameterError, UnknownSpaceError
from knnvec.utils.params import ParamSet

_EPS = 1e-12


class _BaseSpace(SpacePort):
    name = ""
    metric = True

    def __init__(self, params: ParamSet) -> None:
        self._params = params
        params.check_unused(f"space '{self.name}'")

    @property
    def params(self) -> list[str]:
        return self._params.as_list()

    @property
    def is_metric(self) -> bool:
        return self.metric

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        a = np.asarray(a, dtype=np.float32)
        return float(self.distances(np.asarray(b, dtype=np.float32), a.reshape(1, -1))[0])

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, params={self.params!r})"


class L1Space(_BaseSpace):
    name = "l1"

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        diff = vectors.astype(np.float64) - query.astype(np.float64)
        return np.abs(diff).sum(axis=1)


class L2Space(_BaseSpace):
    name = "l2"

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        diff = vectors.astype(np.float64) - query.astype(np.float64)
        return np.sqrt(np.einsum("ij,ij->i", diff, diff))


class LInfSpace(_BaseSpace):
    name = "linf"

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        diff = vectors.astype(np.float64) - query.astype(np.float64)
        if diff.shape[1] == 0:
            return np.zeros(diff.shape[0])
        return np.abs(diff).max(axis=1)


class LpSpace(_BaseSpace):
    """Minkowski distance of order ``p``; a metric only for ``p >= 1``."""

    name = "lp"

    def __init__(self, params: ParamSet) -> None:
        p = params.get_float("p", default=None)
        if p is None:
            raise InvalidParameterError("Space 'lp' requires parameter 'p'")
        if not math.isfinite(p) or p <= 0:
            raise InvalidParameterError(f"Space 'lp' requires a finite p > 0; got {p}")
        self.p = p
        self.metric = p >= 1
        super().__init__(params)

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        diff = np.abs(vectors.astype(np.float64) - query.astype(np.float64))
        return np.power(np.power(diff, self.p).sum(axis=1), 1.0 / self.p)


def _cosine(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    q = query.astype(np.float64)
    v = vectors.astype(np.float64)
    norms = np.linalg.norm(v, axis=1) * np.linalg.norm(q)
    dots = v @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        cos = np.where(norms > _EPS, dots / np.maximum(norms, _EPS), 0.0)
    return np.clip(cos, -1.0, 1.0)


class CosineSpace(_BaseSpace):
    """``1 - cos(a, b)``; zero vectors are treated as orthogonal to everything."""

    name = "cosinesimil"
    metric = False

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        return np.maximum(1.0 - _cosine(query, vectors), 0.0)


class AngularSpace(_BaseSpace):
    name = "angulardist"

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        # arccos is unstable near 1 and undefined for zero vectors; identity is exactly 0.
        identical = np.all(vectors == query, axis=1)
        return np.where(identical, 0.0, np.arccos(_cosine(query, vectors)))


class NegDotProductSpace(_BaseSpace):
    name = "negdotprod"
    metric = False

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        return -(vectors.astype(np.float64) @ query.astype(np.float64))


class KLDivGenSpace(_BaseSpace):
    """Generalized Kullback-Leibler divergence over positive vectors.

    ``sum(a * log(a / b) - a + b)`` with ``a`` the stored object and ``b``
    the query. Asymmetric and non-metric.
    """

    name = "kldivgenfast"
    metric = False

    def distances(self, query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
        a = np.maximum(vectors.astype(np.float64), _EPS)
        b = np.maximum(query.astype(np.float64), _EPS)
        return np.maximum((a * np.log(a / b) - a + b).sum(axis=1), 0.0)


SPACE_FACTORIES: dict[str, Callable[[ParamSet], SpacePort]] = {
    cls.name: cls
    for cls in (
        L1Space,
        L2Space,
        LInfSpace,
        LpSpace,
        CosineSpace,
        AngularSpace,
        NegDotProductSpace,
        KLDivGenSpace,
    )
}


def available_spaces() -> list[str]:
    """Return registered space names in sorted order."""
    return sorted(SPACE_FACTORIES)


def create_space(name: str, params: Iterable[str] | str | None = None) -> SpacePort:
    """Instantiate the space registered under ``name``.

    Raises:
        UnknownSpaceError: If ``name`` is not registered.
        InvalidParameterError: If ``params`` do not parse for that space.
    """
    try:
        factory = SPACE_FACTORIES[name]
    except KeyError as exc:
        raise UnknownSpaceError(
            f"Unknown space type {name!r}; available: {', '.join(available_spaces())}"
        ) from exc
    return factory(ParamSet.parse(params))
