#!/usr/bin/env python3
"""Benchmark knnvec index methods on a synthetic corpus.

Measures build time, single-query latency, batch throughput and recall@k of
each method against the exact ``seq_search`` results.
"""

from __future__ import annotations

import argparse
import json
import os
import platform
import statistics
import time
from pathlib import Path
from typing import Any

import numpy as np

from knnvec import __version__ as KNNVEC_VERSION
from knnvec.app.handle import IndexHandle

DEFAULT_METHODS = ("seq_search", "sw-graph", "hnsw")


def make_corpus(count: int, dim: int, queries: int, seed: int) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    data = rng.standard_normal((count, dim), dtype=np.float32)
    probes = rng.standard_normal((queries, dim), dtype=np.float32)
    return data, probes


def _build(method: str, space: str, data: np.ndarray, params: list[str]) -> tuple[IndexHandle, float]:
    handle = IndexHandle(space, [], method)
    handle.add_data_point_batch(np.arange(len(data)), data)
    start = time.perf_counter()
    handle.create_index(params)
    return handle, time.perf_counter() - start


def benchmark_method(
    method: str,
    space: str,
    data: np.ndarray,
    probes: np.ndarray,
    k: int,
    threads: int,
    truth: list[list[int]] | None,
    params: list[str],
) -> tuple[dict[str, Any], list[list[int]]]:
    handle, build_sec = _build(method, space, data, params)

    latencies: list[float] = []
    answers: list[list[int]] = []
    for probe in probes:
        start = time.perf_counter()
        answers.append(handle.knn_query(k, probe))
        latencies.append((time.perf_counter() - start) * 1000.0)

    start = time.perf_counter()
    handle.knn_query_batch(threads, k, probes)
    batch_sec = time.perf_counter() - start
    handle.close()

    latencies.sort()
    p95_index = max(0, min(int(len(latencies) * 0.95) - 1, len(latencies) - 1))

    metrics: dict[str, Any] = {
        "method": method,
        "build_sec": build_sec,
        "median_latency_ms": statistics.median(latencies),
        "p95_latency_ms": latencies[p95_index],
        "batch_queries_per_sec": len(probes) / batch_sec if batch_sec else None,
    }
    if truth is not None:
        hits = sum(len(set(got) & set(expected)) for got, expected in zip(answers, truth, strict=True))
        metrics["recall_at_k"] = hits / float(k * len(truth))
    return metrics, answers


def _method_params(raw: list[str], method: str) -> list[str]:
    params: list[str] = []
    for item in raw:
        owner, sep, pair = item.partition(":")
        if not sep:
            raise SystemExit(f"--param expects METHOD:key=value; got {item!r}")
        if owner == method:
            params.append(pair)
    return params


def run_benchmarks(args: argparse.Namespace) -> dict[str, Any]:
    data, probes = make_corpus(args.count, args.dim, args.queries, args.seed)
    print(f"Benchmarking {len(args.methods)} methods on {args.count}x{args.dim} ({args.space})...\n")

    results: dict[str, Any] = {
        "timestamp": time.time(),
        "count": args.count,
        "dim": args.dim,
        "queries": args.queries,
        "k": args.k,
        "space": args.space,
        "metadata": {
            "knnvec_version": KNNVEC_VERSION,
            "python_version": platform.python_version(),
            "platform": platform.platform(),
            "cpu_count": os.cpu_count(),
        },
        "benchmarks": [],
    }

    # Ground truth first; every other method is scored against it.
    exact, truth = benchmark_method(
        "seq_search", args.space, data, probes, args.k, args.threads, None, []
    )
    exact["recall_at_k"] = 1.0
    for position, method in enumerate(args.methods, start=1):
        if method == "seq_search":
            metrics = exact
        else:
            params = _method_params(args.param, method)
            metrics, _ = benchmark_method(
                method, args.space, data, probes, args.k, args.threads, truth, params
            )
        results["benchmarks"].append(metrics)
        print(
            f"[{position}/{len(args.methods)}] {method:<10} build={metrics['build_sec']:.2f}s "
            f"p50={metrics['median_latency_ms']:.2f}ms recall={metrics['recall_at_k']:.3f}"
        )
    return results


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark knnvec methods on random vectors.")
    parser.add_argument("--count", type=int, default=10_000, help="Number of indexed vectors.")
    parser.add_argument("--dim", type=int, default=64, help="Vector dimensionality.")
    parser.add_argument("--queries", type=int, default=200, help="Number of query vectors.")
    parser.add_argument("-k", type=int, default=10, help="Neighbors per query.")
    parser.add_argument("--space", default="l2", help="Distance space name.")
    parser.add_argument("--threads", type=int, default=os.cpu_count() or 1, help="Batch workers.")
    parser.add_argument("--seed", type=int, default=0, help="Corpus random seed.")
    parser.add_argument(
        "--methods",
        nargs="+",
        default=list(DEFAULT_METHODS),
        help="Methods to benchmark.",
    )
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        help="Build parameter as METHOD:key=value, e.g. hnsw:M=32 (repeatable).",
    )
    parser.add_argument("--output", type=Path, help="Optional path to write results JSON.")
    args = parser.parse_args()

    results = run_benchmarks(args)
    payload = json.dumps(results, indent=2)
    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        print(f"\nResults saved to {args.output}")
    else:
        print(payload)


if __name__ == "__main__":  # pragma: no cover
    main()
