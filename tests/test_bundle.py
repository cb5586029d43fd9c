from __future__ import annotations

import json
from pathlib import Path

import pytest

from knnvec import __version__
from knnvec.app.bundle import (
    INDEX_NAME,
    MANIFEST_NAME,
    STORE_NAME,
    load_bundle,
    read_manifest,
    save_bundle,
)
from knnvec.app.handle import IndexHandle
from knnvec.errors import IndexFormatError, NotReadyError, PersistenceError


@pytest.fixture
def built_handle(random_corpus) -> IndexHandle:
    handle = IndexHandle("l2", [], "sw-graph")
    handle.add_data_point_batch(*random_corpus)
    handle.create_index(["NN=6"])
    return handle


def test_save_bundle_writes_all_parts(built_handle: IndexHandle, temp_dir: Path) -> None:
    directory = temp_dir / "bundle"
    manifest = save_bundle(built_handle, directory)

    for name in (MANIFEST_NAME, STORE_NAME, INDEX_NAME, INDEX_NAME + ".meta.json"):
        assert (directory / name).exists(), name
    assert manifest.method == "sw-graph"
    assert manifest.space == "l2"
    assert manifest.build_params == ["NN=6"]
    assert manifest.point_count == 200
    assert manifest.dim == 8
    assert manifest.producer_version == __version__


def test_load_bundle_reproduces_queries(
    built_handle: IndexHandle, random_queries, temp_dir: Path
) -> None:
    directory = temp_dir / "bundle"
    save_bundle(built_handle, directory)

    loaded = load_bundle(directory)
    assert loaded.is_ready
    assert loaded.build_params == ["NN=6"]
    for query in random_queries:
        assert loaded.knn_query(4, query) == built_handle.knn_query(4, query)


def test_save_requires_ready_handle(temp_dir: Path) -> None:
    handle = IndexHandle("l2", [], "seq_search")
    with pytest.raises(NotReadyError):
        save_bundle(handle, temp_dir / "bundle")


def test_missing_and_invalid_manifest(built_handle: IndexHandle, temp_dir: Path) -> None:
    with pytest.raises(PersistenceError):
        read_manifest(temp_dir / "nowhere")

    directory = temp_dir / "bundle"
    save_bundle(built_handle, directory)
    manifest_path = directory / MANIFEST_NAME
    data = json.loads(manifest_path.read_text(encoding="utf-8"))

    data["point_count"] = -1
    manifest_path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(IndexFormatError):
        read_manifest(directory)

    manifest_path.write_text("not json", encoding="utf-8")
    with pytest.raises(IndexFormatError):
        load_bundle(directory)


def test_manifest_count_must_match_store(built_handle: IndexHandle, temp_dir: Path) -> None:
    directory = temp_dir / "bundle"
    save_bundle(built_handle, directory)
    manifest_path = directory / MANIFEST_NAME
    data = json.loads(manifest_path.read_text(encoding="utf-8"))
    data["point_count"] = 3
    manifest_path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(IndexFormatError, match="manifest says 3"):
        load_bundle(directory)


def test_unsupported_format_version(built_handle: IndexHandle, temp_dir: Path) -> None:
    directory = temp_dir / "bundle"
    save_bundle(built_handle, directory)
    manifest_path = directory / MANIFEST_NAME
    data = json.loads(manifest_path.read_text(encoding="utf-8"))
    data["format_version"] = 99
    manifest_path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(IndexFormatError, match="version"):
        read_manifest(directory)
