from __future__ import annotations

from functools import partial
from typing import List, Tuple

import numpy as np

from fastmks import config as mks_config
from fastmks.core.bounds import point_node_bounds
from fastmks.core.kernels import ensure_finite
from fastmks.core.tree import KernelTree
from fastmks.logging import get_logger
from fastmks.queries._workers import query_blocks, run_tasks
from fastmks.queries.results import (
    CandidateSets,
    TraversalResult,
    TraversalStats,
    validate_k,
)

LOGGER = get_logger("queries.single_tree")


def _descend(
    tree: KernelTree,
    points: np.ndarray,
    norms: np.ndarray,
    k: int,
) -> Tuple[CandidateSets, TraversalStats]:
    """Depth-first descent of ``tree`` for one block of query points.

    Each stack entry carries the bound computed for its rows when the parent
    was expanded; the pruning test runs when the entry is popped, against the
    rows' candidate sets as they stand at that moment. A row's decisions only
    ever depend on its own candidate set, so the block behaves like that many
    independent descents sharing the same visiting order. Siblings are visited
    highest block-wide bound first; with a block of one query this is exactly
    the per-query descending-bound order.
    """

    candidates = CandidateSets(points.shape[0], k)
    rows = np.arange(points.shape[0], dtype=np.int64)
    root = tree.root
    root_bounds = point_node_bounds(tree, [root], points, norms)[:, 0]
    base_cases = 0
    scores = int(rows.size)
    prunes = 0

    stack: List[Tuple[int, np.ndarray, np.ndarray]] = [(root, rows, root_bounds)]
    while stack:
        node, node_rows, bounds = stack.pop()
        active = bounds > candidates.worst(node_rows)
        if not np.all(active):
            prunes += int(node_rows.size - np.count_nonzero(active))
            if not np.any(active):
                continue
            node_rows = node_rows[active]

        if tree.is_leaf(node):
            members = tree.members(node)
            values = ensure_finite(
                tree.kernel.pairwise(points[node_rows], tree.points[members]),
                what="single-tree base cases",
            )
            base_cases += int(values.size)
            candidates.offer(node_rows, members, values)
            continue

        children = tree.children(node)
        child_bounds = point_node_bounds(tree, children, points[node_rows], norms[node_rows])
        scores += int(child_bounds.size)
        best = child_bounds.max(axis=0)
        first, second = (0, 1) if best[0] >= best[1] else (1, 0)
        stack.append((int(children[second]), node_rows, child_bounds[:, second]))
        stack.append((int(children[first]), node_rows, child_bounds[:, first]))

    stats = TraversalStats(mode="single", base_cases=base_cases, scores=scores, prunes=prunes)
    return candidates, stats


def single_tree_search(
    queries: np.ndarray,
    tree: KernelTree,
    k: int,
    *,
    query_block: int | None = None,
    workers: int | None = None,
) -> TraversalResult:
    """Search ``tree`` for the top-``k`` kernel values of every query point."""

    k = validate_k(k, tree.num_points)
    runtime = mks_config.runtime_config()
    query_block = query_block or runtime.query_block
    workers = workers or runtime.workers

    query_self = ensure_finite(tree.kernel.diagonal(queries), what="query self-kernels")
    query_norms = np.sqrt(np.maximum(query_self, 0.0))

    tasks = [
        partial(_descend, tree, queries[rows], query_norms[rows], k)
        for rows in query_blocks(queries.shape[0], query_block)
    ]
    parts = run_tasks(tasks, workers)
    candidates = CandidateSets.concatenate([part[0] for part in parts])
    stats = TraversalStats.total("single", (part[1] for part in parts))
    LOGGER.debug(
        "Single-tree search: base_cases=%d scores=%d prunes=%d",
        stats.base_cases,
        stats.scores,
        stats.prunes,
    )
    return TraversalResult(candidates=candidates, stats=stats)


__all__ = ["single_tree_search"]
