"""Port interfaces for the knnvec application layer.

Search components depend on these protocols, never on concrete adapters.
"""

from knnvec.app.ports.method import IndexMethodPort
from knnvec.app.ports.space import SpacePort

__all__ = ["IndexMethodPort", "SpacePort"]
