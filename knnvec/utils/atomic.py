"""Atomic file writing helpers with durability guarantees."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """Write ``payload`` to ``path`` atomically.

    The write is performed via a temporary file followed by an ``os.replace``
    once the contents are flushed and fsynced, so readers never observe a
    half-written index.
    """
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    fd: int | None = None
    tmp_path: str | None = None

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(destination.parent),
            prefix=destination.name,
            suffix=".tmp",
        )

        with os.fdopen(fd, "wb") as handle:
            fd = None  # Ownership transferred to file object
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())

        os.replace(tmp_path, destination)
        tmp_path = None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass


def atomic_write_json(path: Path, payload: Any) -> None:
    """Serialize ``payload`` as JSON and write it atomically."""
    atomic_write_bytes(path, json.dumps(payload, sort_keys=True).encode("utf-8"))
