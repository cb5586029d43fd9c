"""knnvec - approximate nearest-neighbor search over float vectors.

Insert identified vectors, build an index with a pluggable method and
distance space, persist it, and answer single or batched kNN queries.
"""

import logging

from knnvec._version import __version__
from knnvec.app import DataType, DistType, IndexHandle, IndexToken
from knnvec.bootstrap import init_library, shutdown_library
from knnvec.config import Settings, get_settings

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DataType",
    "DistType",
    "IndexHandle",
    "IndexToken",
    "Settings",
    "__version__",
    "get_settings",
    "init_library",
    "shutdown_library",
]
