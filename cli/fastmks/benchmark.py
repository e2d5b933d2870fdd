from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.random import Generator

from fastmks import FastMaxKernelSearch, Kernel, TraversalStats

MODES = ("naive", "single", "dual")
DISTRIBUTIONS = ("normal", "uniform")


@dataclass(frozen=True)
class ModeBenchmarkResult:
    mode: str
    build_seconds: float
    search_seconds: float
    queries: int
    k: int
    stats: TraversalStats
    indices: np.ndarray
    values: np.ndarray

    @property
    def queries_per_second(self) -> float:
        if self.search_seconds <= 0:
            return float("inf")
        return self.queries / self.search_seconds


def generate_points(
    rng: Generator, count: int, dimension: int, *, distribution: str = "normal"
) -> np.ndarray:
    """Sample a ``(count, dimension)`` dataset from the named distribution."""

    if distribution == "normal":
        return rng.normal(loc=0.0, scale=1.0, size=(count, dimension))
    if distribution == "uniform":
        return rng.uniform(low=0.0, high=1.0, size=(count, dimension))
    raise ValueError(
        f"Unsupported distribution '{distribution}'. Expected one of {DISTRIBUTIONS}."
    )


def benchmark_mode(
    mode: str,
    references: np.ndarray,
    kernel: Kernel,
    k: int,
    *,
    queries: np.ndarray | None = None,
    leaf_size: int | None = None,
    workers: int | None = None,
) -> ModeBenchmarkResult:
    if mode not in MODES:
        raise ValueError(f"Unsupported mode '{mode}'. Expected one of {MODES}.")
    start = time.perf_counter()
    search = FastMaxKernelSearch(
        references,
        kernel,
        single_mode=mode == "single",
        naive_mode=mode == "naive",
        queries=queries,
        leaf_size=leaf_size,
        workers=workers,
    )
    build_seconds = time.perf_counter() - start

    start = time.perf_counter()
    indices, values = search.search(k)
    search_seconds = time.perf_counter() - start
    stats = search.last_stats
    if stats is None:
        raise RuntimeError(f"The {mode} search finished without reporting traversal statistics.")
    return ModeBenchmarkResult(
        mode=mode,
        build_seconds=build_seconds,
        search_seconds=search_seconds,
        queries=int(indices.shape[1]),
        k=k,
        stats=stats,
        indices=indices,
        values=values,
    )


def results_match(
    result: ModeBenchmarkResult, baseline: ModeBenchmarkResult, *, rtol: float = 1e-5
) -> bool:
    """Same index table and value tables equal within ``rtol``."""

    return bool(
        np.array_equal(result.indices, baseline.indices)
        and np.allclose(result.values, baseline.values, rtol=rtol, atol=1e-8)
    )


def format_result(result: ModeBenchmarkResult, *, extra: Any = None) -> str:
    line = (
        f"{result.mode:>6} | build={result.build_seconds:.4f}s "
        f"search={result.search_seconds:.4f}s "
        f"queries={result.queries} k={result.k} "
        f"throughput={result.queries_per_second:,.1f} q/s "
        f"base_cases={result.stats.base_cases} "
        f"scores={result.stats.scores} prunes={result.stats.prunes}"
    )
    if extra:
        line += f" {extra}"
    return line


__all__ = [
    "DISTRIBUTIONS",
    "MODES",
    "ModeBenchmarkResult",
    "benchmark_mode",
    "format_result",
    "generate_points",
    "results_match",
]
