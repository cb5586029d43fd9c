"""Index method port interface for approximate kNN search."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from knnvec.utils.params import ParamSet

if TYPE_CHECKING:  # pragma: no cover
    from knnvec.app.knn_queue import KnnQuery
    from knnvec.app.vector_store import DataPoint


class IndexMethodPort(Protocol):
    """Port interface for a pluggable indexing method.

    Adapters: exact sequential scan, small-world graph, hnswlib HNSW.

    An instance is bound to one space and one vector store snapshot when it
    is created. It moves from Uninitialized to Ready through exactly one call
    to :meth:`build` or :meth:`restore`; rebuilding means creating a new
    instance. Once Ready, :meth:`search` must be safe to call from many
    threads at once.

    Side effects: :meth:`persist` and :meth:`restore` touch the filesystem.
    """

    name: str

    @property
    def is_ready(self) -> bool:
        """True once :meth:`build` or :meth:`restore` has succeeded."""
        ...

    def build(self, params: ParamSet) -> None:
        """Construct the index from the bound store using build-time ``params``."""
        ...

    def persist(self, path: Path) -> None:
        """Write the Ready index to ``path`` (plus a ``.meta.json`` sidecar)."""
        ...

    def restore(self, path: Path) -> None:
        """Load an index written by :meth:`persist`, bypassing :meth:`build`."""
        ...

    def set_query_params(self, params: ParamSet) -> None:
        """Replace the active query-time configuration."""
        ...

    def search(self, query: "KnnQuery[DataPoint]") -> None:
        """Feed candidates for ``query`` into its bounded result queue."""
        ...
