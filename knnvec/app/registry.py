"""Opaque, generation-checked tokens for index handles."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import cast

from knnvec.app.handle import IndexHandle
from knnvec.errors import StaleHandleError


@dataclass(frozen=True, slots=True)
class IndexToken:
    """Reference to a registered handle.

    The generation changes every time a slot is released, so a token kept
    after :meth:`HandleRegistry.release` can never resolve to a newer handle
    that reuses the same slot.
    """

    slot: int
    generation: int


class HandleRegistry:
    """Thread-safe table of live index handles."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: list[IndexHandle | None] = []
        self._generations: list[int] = []
        self._free: list[int] = []

    def register(self, handle: IndexHandle) -> IndexToken:
        with self._lock:
            if self._free:
                slot = self._free.pop()
            else:
                slot = len(self._handles)
                self._handles.append(None)
                self._generations.append(0)
            self._handles[slot] = handle
            return IndexToken(slot, self._generations[slot])

    def _lookup(self, token: object) -> int:
        if not isinstance(token, IndexToken):
            raise StaleHandleError(f"Not an index token: {token!r}")
        slot = token.slot
        if (
            not isinstance(slot, int)
            or slot < 0
            or slot >= len(self._handles)
            or self._handles[slot] is None
            or self._generations[slot] != token.generation
        ):
            raise StaleHandleError(f"Index token {token} is stale or was never issued")
        return slot

    def resolve(self, token: IndexToken) -> IndexHandle:
        with self._lock:
            return cast(IndexHandle, self._handles[self._lookup(token)])

    def release(self, token: IndexToken) -> None:
        """Close the handle behind ``token`` and invalidate the token."""
        with self._lock:
            slot = self._lookup(token)
            handle = self._handles[slot]
            self._handles[slot] = None
            self._generations[slot] += 1
            self._free.append(slot)
        if handle is not None:
            handle.close()

    def __len__(self) -> int:
        with self._lock:
            return sum(handle is not None for handle in self._handles)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            try:
                self._lookup(token)
            except StaleHandleError:
                return False
            return True
