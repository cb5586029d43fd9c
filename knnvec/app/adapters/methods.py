"""Registry of index methods by name."""

from __future__ import annotations

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.adapters.hnsw import HnswMethod
from knnvec.app.adapters.seq_search import SeqSearchMethod
from knnvec.app.adapters.sw_graph import SmallWorldGraphMethod
from knnvec.app.ports.space import SpacePort
from knnvec.app.vector_store import VectorStore
from knnvec.errors import UnknownMethodError

METHOD_FACTORIES: dict[str, type[BaseMethod]] = {
    cls.name: cls for cls in (SeqSearchMethod, SmallWorldGraphMethod, HnswMethod)
}


def available_methods() -> list[str]:
    return sorted(METHOD_FACTORIES)


def ensure_method(name: str) -> type[BaseMethod]:
    """Return the method class for ``name`` or raise :class:`UnknownMethodError`."""
    try:
        return METHOD_FACTORIES[name]
    except KeyError as exc:
        raise UnknownMethodError(
            f"Unknown method {name!r}; available: {', '.join(available_methods())}"
        ) from exc


def create_method(
    name: str,
    space: SpacePort,
    store: VectorStore,
    *,
    print_progress: bool = False,
    progress_interval: int = 10_000,
) -> BaseMethod:
    """Instantiate method ``name`` bound to ``space`` and ``store``."""
    factory = ensure_method(name)
    return factory(
        space,
        store,
        print_progress=print_progress,
        progress_interval=progress_interval,
    )
