"""Index method lifecycle, accuracy and persistence."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from knnvec.app.adapters.base import meta_path_for
from knnvec.app.adapters.methods import available_methods, create_method, ensure_method
from knnvec.app.adapters.spaces import create_space
from knnvec.app.search_engine import KnnSearchEngine
from knnvec.app.vector_store import VectorStore
from knnvec.errors import (
    BuildError,
    IndexFormatError,
    InvalidParameterError,
    NotReadyError,
    ParamMismatchError,
    PersistenceError,
    SearchError,
    StateError,
    UnknownMethodError,
)
from knnvec.utils.params import ParamSet

METHODS = ["seq_search", "sw-graph", "hnsw"]

# Settings large enough that both graph methods explore the whole toy corpus.
EXHAUSTIVE_BUILD = {"seq_search": [], "sw-graph": ["NN=8"], "hnsw": ["M=16", "efConstruction=200"]}
EXHAUSTIVE_QUERY = {"seq_search": [], "sw-graph": ["efSearch=200"], "hnsw": ["ef=200"]}


def _store(ids: np.ndarray, vectors: np.ndarray) -> VectorStore:
    store = VectorStore()
    store.extend(ids, vectors)
    return store


def _built(name: str, store: VectorStore, space: str = "l2"):
    if name == "hnsw":
        pytest.importorskip("hnswlib")
    method = create_method(name, create_space(space), store)
    method.build(ParamSet.parse(EXHAUSTIVE_BUILD[name]))
    method.set_query_params(ParamSet.parse(EXHAUSTIVE_QUERY[name]))
    return method


def _exact(store: VectorStore, query: np.ndarray, k: int) -> list[int]:
    distances = np.linalg.norm(store.matrix() - query, axis=1)
    return [store.identifiers[i] for i in np.argsort(distances, kind="stable")[:k]]


@pytest.mark.parametrize("name", METHODS)
def test_results_match_exact_scan(name: str, random_corpus, random_queries) -> None:
    store = _store(*random_corpus)
    method = _built(name, store)
    engine = KnnSearchEngine(method, method.space, store)

    hits = 0
    for query in random_queries:
        neighbors = engine.search(query, 5)
        distances = [neighbor.distance for neighbor in neighbors]
        assert distances == sorted(distances)
        assert len({neighbor.identifier for neighbor in neighbors}) == len(neighbors)
        hits += len(set(engine.query_ids(query, 5)) & set(_exact(store, query, 5)))

    recall = hits / (5 * len(random_queries))
    if name == "hnsw":
        assert recall >= 0.95
    else:
        assert recall == 1.0


@pytest.mark.parametrize("name", METHODS)
def test_persist_restore_reproduces_results(
    name: str, random_corpus, random_queries, temp_dir: Path
) -> None:
    store = _store(*random_corpus)
    method = _built(name, store)
    path = temp_dir / f"{name}.bin"
    method.persist(path)
    assert path.exists()
    assert meta_path_for(path).exists()

    restored = create_method(name, create_space("l2"), store)
    restored.restore(path)
    restored.set_query_params(ParamSet.parse(EXHAUSTIVE_QUERY[name]))
    assert restored.is_ready

    original = KnnSearchEngine(method, method.space, store)
    reloaded = KnnSearchEngine(restored, restored.space, store)
    for query in random_queries:
        assert reloaded.query_ids(query, 7) == original.query_ids(query, 7)


@pytest.mark.parametrize("name", METHODS)
def test_restore_rejects_other_space(name: str, random_corpus, temp_dir: Path) -> None:
    store = _store(*random_corpus)
    path = temp_dir / "index.bin"
    _built(name, store).persist(path)

    other_space = "cosinesimil"
    restored = create_method(name, create_space(other_space), store)
    with pytest.raises(ParamMismatchError, match="space"):
        restored.restore(path)
    assert not restored.is_ready


def test_restore_rejects_other_corpus(random_corpus, temp_dir: Path) -> None:
    ids, vectors = random_corpus
    path = temp_dir / "index.bin"
    _built("sw-graph", _store(ids, vectors)).persist(path)

    smaller = create_method("sw-graph", create_space("l2"), _store(ids[:10], vectors[:10]))
    with pytest.raises(ParamMismatchError, match="count"):
        smaller.restore(path)


def test_restore_missing_and_corrupt_files(random_corpus, temp_dir: Path) -> None:
    store = _store(*random_corpus)
    with pytest.raises(PersistenceError):
        create_method("sw-graph", create_space("l2"), store).restore(temp_dir / "nope.bin")

    path = temp_dir / "index.bin"
    _built("sw-graph", store).persist(path)

    meta_path_for(path).write_text("{not json", encoding="utf-8")
    with pytest.raises(IndexFormatError):
        create_method("sw-graph", create_space("l2"), store).restore(path)

    _built("sw-graph", store).persist(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["neighbors"][0] = [10_000]
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(IndexFormatError, match="adjacency"):
        create_method("sw-graph", create_space("l2"), store).restore(path)


def test_restore_rejects_other_method_file(random_corpus, temp_dir: Path) -> None:
    store = _store(*random_corpus)
    path = temp_dir / "index.bin"
    _built("seq_search", store).persist(path)
    with pytest.raises(ParamMismatchError, match="method"):
        create_method("sw-graph", create_space("l2"), store).restore(path)


@pytest.mark.parametrize("name", ["seq_search", "sw-graph"])
def test_lifecycle_state_errors(name: str, random_corpus, random_queries, temp_dir: Path) -> None:
    store = _store(*random_corpus)
    method = create_method(name, create_space("l2"), store)
    engine = KnnSearchEngine(method, method.space, store)

    with pytest.raises(NotReadyError):
        engine.search(random_queries[0], 3)
    with pytest.raises(NotReadyError):
        method.persist(temp_dir / "early.bin")
    with pytest.raises(NotReadyError):
        method.set_query_params(ParamSet())

    method.build(ParamSet())
    with pytest.raises(StateError):
        method.build(ParamSet())
    method.persist(temp_dir / "built.bin")
    with pytest.raises(StateError):
        method.restore(temp_dir / "built.bin")


def test_unknown_build_and_query_params(random_corpus) -> None:
    store = _store(*random_corpus)
    method = create_method("sw-graph", create_space("l2"), store)
    with pytest.raises(InvalidParameterError, match="bogus"):
        method.build(ParamSet.parse(["NN=4", "bogus=1"]))
    assert not method.is_ready

    built = _built("sw-graph", store)
    with pytest.raises(InvalidParameterError, match="M"):
        built.set_query_params(ParamSet.parse(["M=3"]))


def test_graph_methods_reject_empty_corpus() -> None:
    method = create_method("sw-graph", create_space("l2"), VectorStore())
    with pytest.raises(BuildError, match="empty"):
        method.build(ParamSet())


def test_seq_search_over_empty_corpus_returns_nothing() -> None:
    store = VectorStore(dim=2)
    method = create_method("seq_search", create_space("l2"), store)
    method.build(ParamSet())
    engine = KnnSearchEngine(method, method.space, store)
    assert engine.search(np.zeros(2, dtype=np.float32), 3) == []


def test_sw_graph_build_is_deterministic(random_corpus, random_queries) -> None:
    first = _built("sw-graph", _store(*random_corpus))
    second = _built("sw-graph", _store(*random_corpus))
    assert first._neighbors == second._neighbors


def test_sw_graph_small_ef_still_returns_k(random_corpus, random_queries) -> None:
    store = _store(*random_corpus)
    method = create_method("sw-graph", create_space("l2"), store)
    method.build(ParamSet.parse(["NN=4", "efConstruction=8", "randomSeed=3"]))
    method.set_query_params(ParamSet.parse(["efSearch=1"]))
    engine = KnnSearchEngine(method, method.space, store)
    assert len(engine.search(random_queries[0], 10)) == 10


def test_sw_graph_supports_non_metric_space(random_corpus, random_queries) -> None:
    ids, vectors = random_corpus
    store = _store(ids, np.abs(vectors) + 0.01)
    method = create_method("sw-graph", create_space("kldivgenfast"), store)
    method.build(ParamSet.parse(["NN=8"]))
    method.set_query_params(ParamSet.parse(["efSearch=200"]))
    engine = KnnSearchEngine(method, method.space, store)

    exact = create_method("seq_search", create_space("kldivgenfast"), store)
    exact.build(ParamSet())
    baseline = KnnSearchEngine(exact, exact.space, store)
    query = np.abs(random_queries[0]) + 0.01
    assert engine.query_ids(query, 5) == baseline.query_ids(query, 5)


def test_seq_search_ties_resolve_in_storage_order() -> None:
    store = VectorStore()
    store.extend([3, 1, 2], np.asarray([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]], dtype=np.float32))
    method = create_method("seq_search", create_space("l2"), store)
    method.build(ParamSet())
    engine = KnnSearchEngine(method, method.space, store)
    assert engine.query_ids(np.zeros(2, dtype=np.float32), 2) == [3, 1]


def test_hnsw_rejects_unsupported_space(random_corpus) -> None:
    with pytest.raises(InvalidParameterError, match="hnsw"):
        create_method("hnsw", create_space("l1"), _store(*random_corpus))


def test_hnsw_negdotprod_reports_negated_dot(random_corpus, random_queries) -> None:
    pytest.importorskip("hnswlib")
    store = _store(*random_corpus)
    method = create_method("hnsw", create_space("negdotprod"), store)
    method.build(ParamSet())
    engine = KnnSearchEngine(method, method.space, store)
    query = random_queries[0]
    neighbor = engine.search(query, 1)[0]
    expected = -float(store.vector(neighbor.position).astype(np.float64) @ query.astype(np.float64))
    assert neighbor.distance == pytest.approx(expected, rel=1e-5)


class _FailingHnswIndex:
    def knn_query(self, *args, **kwargs):
        raise RuntimeError("Cannot return the results in a contiguous 2D array")


def test_hnsw_query_failures_are_wrapped(random_corpus, random_queries) -> None:
    store = _store(*random_corpus)
    method = _built("hnsw", store)
    method._index = _FailingHnswIndex()
    engine = KnnSearchEngine(method, method.space, store)

    with pytest.raises(SearchError, match="contiguous 2D array") as excinfo:
        engine.search(random_queries[0], 5)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_method_registry() -> None:
    assert available_methods() == ["hnsw", "seq_search", "sw-graph"]
    with pytest.raises(UnknownMethodError, match="available"):
        ensure_method("lsh")
