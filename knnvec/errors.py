"""Exception hierarchy shared by every knnvec layer.

Each error also derives from the closest builtin so callers that only know
``ValueError`` / ``IndexError`` / ``OSError`` still catch the right thing.
"""

from __future__ import annotations


class KnnVecError(Exception):
    """Base class for all knnvec errors."""

    pass


class ParameterError(KnnVecError, ValueError):
    """Raised for malformed arguments, unsupported type tags, or bad encodings."""

    pass


class ConfigError(KnnVecError, ValueError):
    """Raised when a space, method, or parameter list is not recognized."""

    pass


class UnknownSpaceError(ConfigError):
    """Raised when a space name is not registered."""

    pass


class UnknownMethodError(ConfigError):
    """Raised when a method name is not registered."""

    pass


class InvalidParameterError(ConfigError):
    """Raised when a ``key=value`` parameter is malformed, invalid, or unused."""

    pass


class StateError(KnnVecError, RuntimeError):
    """Raised when an operation is invoked in the wrong lifecycle state."""

    pass


class NotReadyError(StateError):
    """Raised when an index is used before it has been built or loaded."""

    pass


class StaleHandleError(StateError):
    """Raised when a freed, foreign, or malformed handle token is used."""

    pass


class BoundsError(KnnVecError, IndexError):
    """Raised when a data point position is outside ``[0, size)``."""

    pass


class PersistenceError(KnnVecError, OSError):
    """Raised when an index cannot be written to or read from disk."""

    pass


class IndexFormatError(PersistenceError):
    """Raised when a persisted index or manifest is corrupt."""

    pass


class ParamMismatchError(PersistenceError):
    """Raised when a restored index does not match the configured space or corpus."""

    pass


class BuildError(KnnVecError, RuntimeError):
    """Raised when an index method cannot construct its structure."""

    pass


class SearchError(KnnVecError, RuntimeError):
    """Raised when an index method fails while answering a query."""

    pass


__all__ = [
    "BoundsError",
    "BuildError",
    "ConfigError",
    "IndexFormatError",
    "InvalidParameterError",
    "KnnVecError",
    "NotReadyError",
    "ParamMismatchError",
    "ParameterError",
    "PersistenceError",
    "SearchError",
    "StaleHandleError",
    "StateError",
    "UnknownMethodError",
    "UnknownSpaceError",
]
