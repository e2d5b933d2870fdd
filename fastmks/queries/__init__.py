"""Naive, single-tree and dual-tree max-kernel traversals."""

from .dual_tree import dual_tree_search, partition_query_tree
from .naive import naive_search
from .results import (
    CandidateSets,
    TraversalResult,
    TraversalStats,
    assemble,
    top_k_rows,
    validate_k,
)
from .single_tree import single_tree_search

__all__ = [
    "CandidateSets",
    "TraversalResult",
    "TraversalStats",
    "assemble",
    "dual_tree_search",
    "naive_search",
    "partition_query_tree",
    "single_tree_search",
    "top_k_rows",
    "validate_k",
]
