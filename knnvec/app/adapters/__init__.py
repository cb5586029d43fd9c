"""Adapters implementing the distance space and index method ports."""

from knnvec.app.adapters.base import BaseMethod
from knnvec.app.adapters.hnsw import HnswMethod
from knnvec.app.adapters.methods import available_methods, create_method, ensure_method
from knnvec.app.adapters.seq_search import SeqSearchMethod
from knnvec.app.adapters.spaces import available_spaces, create_space
from knnvec.app.adapters.sw_graph import SmallWorldGraphMethod

__all__ = [
    "BaseMethod",
    "HnswMethod",
    "SeqSearchMethod",
    "SmallWorldGraphMethod",
    "available_methods",
    "available_spaces",
    "create_method",
    "create_space",
    "ensure_method",
]
