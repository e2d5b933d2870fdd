from __future__ import annotations

from functools import partial

import numpy as np

from fastmks import config as mks_config
from fastmks.core.kernels import Kernel, ensure_finite
from fastmks.logging import get_logger
from fastmks.queries._workers import query_blocks, run_tasks
from fastmks.queries.results import (
    CandidateSets,
    TraversalResult,
    TraversalStats,
    validate_k,
)

LOGGER = get_logger("queries.naive")


def _scan_block(
    queries: np.ndarray,
    references: np.ndarray,
    kernel: Kernel,
    k: int,
    reference_block: int,
) -> CandidateSets:
    candidates = CandidateSets(queries.shape[0], k)
    rows = np.arange(queries.shape[0], dtype=np.int64)
    for start in range(0, references.shape[0], reference_block):
        stop = min(start + reference_block, references.shape[0])
        values = ensure_finite(
            kernel.pairwise(queries, references[start:stop]), what="naive base cases"
        )
        candidates.offer(rows, np.arange(start, stop, dtype=np.int64), values)
    return candidates


def naive_search(
    queries: np.ndarray,
    references: np.ndarray,
    kernel: Kernel,
    k: int,
    *,
    query_block: int | None = None,
    reference_block: int | None = None,
    workers: int | None = None,
) -> TraversalResult:
    """Evaluate every query against every reference point; no pruning."""

    k = validate_k(k, references.shape[0])
    runtime = mks_config.runtime_config()
    query_block = query_block or runtime.query_block
    reference_block = reference_block or runtime.reference_block
    workers = workers or runtime.workers

    tasks = [
        partial(_scan_block, queries[rows], references, kernel, k, reference_block)
        for rows in query_blocks(queries.shape[0], query_block)
    ]
    candidates = CandidateSets.concatenate(run_tasks(tasks, workers))
    stats = TraversalStats(
        mode="naive",
        base_cases=int(queries.shape[0]) * int(references.shape[0]),
    )
    LOGGER.debug(
        "Naive scan: %d queries x %d references in %d blocks",
        queries.shape[0],
        references.shape[0],
        len(tasks),
    )
    return TraversalResult(candidates=candidates, stats=stats)


__all__ = ["naive_search"]
