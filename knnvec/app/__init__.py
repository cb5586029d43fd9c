"""Application layer: storage, search and index lifecycle."""

from knnvec.app.batch import BatchQueryScheduler
from knnvec.app.bundle import IndexManifest, load_bundle, read_manifest, save_bundle
from knnvec.app.codec import DataType, DistType
from knnvec.app.handle import IndexHandle
from knnvec.app.knn_queue import KnnQuery, KnnQueue
from knnvec.app.registry import HandleRegistry, IndexToken
from knnvec.app.search_engine import KnnSearchEngine, Neighbor
from knnvec.app.vector_store import DataPoint, VectorStore

__all__ = [
    "BatchQueryScheduler",
    "DataPoint",
    "DataType",
    "DistType",
    "HandleRegistry",
    "IndexHandle",
    "IndexManifest",
    "IndexToken",
    "KnnQuery",
    "KnnQueue",
    "KnnSearchEngine",
    "Neighbor",
    "VectorStore",
    "load_bundle",
    "read_manifest",
    "save_bundle",
]
