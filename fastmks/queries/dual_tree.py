from __future__ import annotations

from functools import partial
from typing import List, Tuple

import numpy as np

from fastmks import config as mks_config
from fastmks.core.bounds import node_pair_bounds
from fastmks.core.kernels import ensure_finite
from fastmks.core.tree import KernelTree
from fastmks.errors import InvalidArgument
from fastmks.logging import get_logger
from fastmks.queries._workers import run_tasks
from fastmks.queries.results import (
    CandidateSets,
    TraversalResult,
    TraversalStats,
    validate_k,
)

LOGGER = get_logger("queries.dual_tree")


def partition_query_tree(tree: KernelTree, parts: int) -> List[int]:
    """Pick up to ``parts`` disjoint subtrees covering every query point.

    The largest splittable subtree is expanded until enough subtrees exist;
    the result is sorted by node id so the partition is deterministic.
    """

    frontier = [tree.root]
    while len(frontier) < parts:
        splittable = [node for node in frontier if not tree.is_leaf(node)]
        if not splittable:
            break
        largest = max(splittable, key=lambda node: (tree.count(node), -node))
        frontier.remove(largest)
        frontier.extend(int(child) for child in tree.children(largest))
    return sorted(frontier)


def _refresh_worst(
    query_tree: KernelTree,
    leaf: int,
    task_root: int,
    candidates: CandidateSets,
    node_worst: np.ndarray,
) -> None:
    """Recompute ``leaf``'s aggregate worst value and fold it up to ``task_root``.

    Aggregates only ever grow, so the walk stops at the first ancestor whose
    value does not change.
    """

    node_worst[leaf] = float(candidates.worst(query_tree.members(leaf)).min())
    node = leaf
    while node != task_root:
        parent = int(query_tree.parent[node])
        tightened = min(
            node_worst[query_tree.left[parent]], node_worst[query_tree.right[parent]]
        )
        if tightened <= node_worst[parent]:
            break
        node_worst[parent] = tightened
        node = parent


def _co_traverse(
    query_tree: KernelTree,
    reference_tree: KernelTree,
    task_root: int,
    candidates: CandidateSets,
    node_worst: np.ndarray,
) -> TraversalStats:
    """Co-traverse ``task_root``'s query subtree against the whole reference tree."""

    kernel = reference_tree.kernel
    root_bound = float(
        node_pair_bounds(query_tree, [task_root], reference_tree, [reference_tree.root])[0, 0]
    )
    base_cases = 0
    scores = 1
    prunes = 0

    stack: List[Tuple[int, int, float]] = [(task_root, reference_tree.root, root_bound)]
    while stack:
        query_node, reference_node, bound = stack.pop()
        if bound <= node_worst[query_node]:
            prunes += 1
            continue

        query_leaf = query_tree.is_leaf(query_node)
        reference_leaf = reference_tree.is_leaf(reference_node)
        if query_leaf and reference_leaf:
            rows = query_tree.members(query_node)
            members = reference_tree.members(reference_node)
            values = ensure_finite(
                kernel.pairwise(query_tree.points[rows], reference_tree.points[members]),
                what="dual-tree base cases",
            )
            base_cases += int(values.size)
            if candidates.offer(rows, members, values):
                _refresh_worst(query_tree, query_node, task_root, candidates, node_worst)
            continue

        split_query = not query_leaf and (
            reference_leaf or query_tree.count(query_node) >= reference_tree.count(reference_node)
        )
        if split_query:
            children = query_tree.children(query_node)
            bounds = node_pair_bounds(query_tree, children, reference_tree, [reference_node])[:, 0]
            pairs = [(int(child), reference_node) for child in children]
        else:
            children = reference_tree.children(reference_node)
            bounds = node_pair_bounds(query_tree, [query_node], reference_tree, children)[0]
            pairs = [(query_node, int(child)) for child in children]
        scores += 2

        # Push the weaker pair first so the stronger one is expanded next.
        first, second = (0, 1) if bounds[0] >= bounds[1] else (1, 0)
        stack.append((*pairs[second], float(bounds[second])))
        stack.append((*pairs[first], float(bounds[first])))

    return TraversalStats(mode="dual", base_cases=base_cases, scores=scores, prunes=prunes)


def dual_tree_search(
    query_tree: KernelTree,
    reference_tree: KernelTree,
    k: int,
    *,
    workers: int | None = None,
) -> TraversalResult:
    """Top-``k`` search co-traversing a query tree and a reference tree.

    The two trees may be the same object for monochromatic search. Each query
    node keeps the minimum over its points of their current k-th best value; a
    node pair is skipped once its bound cannot beat that minimum.
    """

    k = validate_k(k, reference_tree.num_points)
    if not query_tree.kernel.same_function(reference_tree.kernel):
        raise InvalidArgument("Query and reference trees were built with different kernels.")
    if query_tree.dimension != reference_tree.dimension:
        raise InvalidArgument(
            f"Query dimension {query_tree.dimension} does not match reference "
            f"dimension {reference_tree.dimension}."
        )
    workers = workers or mks_config.runtime_config().workers

    candidates = CandidateSets(query_tree.num_points, k)
    node_worst = np.full(query_tree.num_nodes, -np.inf, dtype=np.float64)
    task_roots = partition_query_tree(query_tree, workers)
    tasks = [
        partial(_co_traverse, query_tree, reference_tree, task_root, candidates, node_worst)
        for task_root in task_roots
    ]
    stats = TraversalStats.total("dual", run_tasks(tasks, workers))
    LOGGER.debug(
        "Dual-tree search over %d query subtrees: base_cases=%d scores=%d prunes=%d",
        len(task_roots),
        stats.base_cases,
        stats.scores,
        stats.prunes,
    )
    return TraversalResult(candidates=candidates, stats=stats)


__all__ = ["dual_tree_search", "partition_query_tree"]
