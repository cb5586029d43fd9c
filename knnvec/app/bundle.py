"""Self-describing on-disk bundles of an index handle.

A bundle directory holds everything needed to reopen an index without the
caller re-supplying its configuration or vectors::

    manifest.json        IndexManifest
    store.npz            identifiers and vectors
    index.bin            method payload
    index.bin.meta.json  method sidecar
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from knnvec._version import __version__
from knnvec.app.handle import IndexHandle
from knnvec.app.vector_store import VectorStore
from knnvec.errors import IndexFormatError, NotReadyError, PersistenceError
from knnvec.utils.atomic import atomic_write_bytes

logger = logging.getLogger(__name__)

BUNDLE_FORMAT_VERSION = 1
MANIFEST_NAME = "manifest.json"
STORE_NAME = "store.npz"
INDEX_NAME = "index.bin"


class IndexManifest(BaseModel):
    """Bundle manifest."""

    format_version: int = BUNDLE_FORMAT_VERSION
    space: str
    space_params: list[str] = Field(default_factory=list)
    method: str
    build_params: list[str] = Field(default_factory=list)
    point_count: int = Field(ge=0)
    dim: int | None = None
    producer_version: str
    created_at: str


def save_bundle(
    handle: IndexHandle,
    directory: Path,
    *,
    build_params: list[str] | None = None,
) -> IndexManifest:
    """Write a Ready ``handle`` into ``directory`` and return its manifest."""
    if not handle.is_ready:
        raise NotReadyError("Cannot save a bundle before the index is built or loaded")

    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PersistenceError(f"Cannot create bundle directory {directory}: {exc}") from exc

    handle.store.save(directory / STORE_NAME)
    handle.save_index(directory / INDEX_NAME)

    manifest = IndexManifest(
        space=handle.space_name,
        space_params=list(handle.space.params),
        method=handle.method_name,
        build_params=build_params if build_params is not None else handle.build_params,
        point_count=len(handle.store),
        dim=handle.store.dim,
        producer_version=__version__,
        created_at=datetime.now(UTC).isoformat(),
    )
    # Manifest last: a directory without one is never mistaken for a complete bundle.
    try:
        atomic_write_bytes(
            directory / MANIFEST_NAME, manifest.model_dump_json(indent=2).encode("utf-8")
        )
    except OSError as exc:
        raise PersistenceError(f"Cannot write bundle manifest in {directory}: {exc}") from exc
    logger.info("Saved %s bundle with %d points to %s", manifest.method, manifest.point_count, directory)
    return manifest


def read_manifest(directory: Path) -> IndexManifest:
    """Parse and validate the manifest of the bundle in ``directory``."""
    manifest_path = Path(directory) / MANIFEST_NAME
    if not manifest_path.exists():
        raise PersistenceError(f"Bundle manifest not found: {manifest_path}")
    try:
        manifest = IndexManifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise IndexFormatError(f"Invalid bundle manifest {manifest_path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise PersistenceError(f"Cannot read bundle manifest {manifest_path}: {exc}") from exc
    if manifest.format_version != BUNDLE_FORMAT_VERSION:
        raise IndexFormatError(
            f"Unsupported bundle format version {manifest.format_version} in {manifest_path}"
        )
    return manifest


def load_bundle(directory: Path) -> IndexHandle:
    """Reopen a bundle written by :func:`save_bundle` as a Ready handle."""
    directory = Path(directory)
    manifest = read_manifest(directory)

    handle = IndexHandle(manifest.space, manifest.space_params, manifest.method)
    try:
        saved = VectorStore.load(directory / STORE_NAME)
        if len(saved) != manifest.point_count:
            raise IndexFormatError(
                f"Bundle store holds {len(saved)} points; manifest says {manifest.point_count}"
            )
        if len(saved):
            handle.add_data_point_batch(saved.identifiers, saved.matrix())
        handle.load_index(directory / INDEX_NAME, build_params=manifest.build_params)
    except Exception:
        handle.close()
        raise
    logger.info("Loaded %s bundle with %d points from %s", manifest.method, len(handle.store), directory)
    return handle
