from __future__ import annotations

import operator
from typing import Any, Tuple

import numpy as np

from fastmks import config as mks_config
from fastmks.core.kernels import Kernel, KernelEvaluator, as_kernel
from fastmks.core.tree import KernelTree, build_kernel_tree
from fastmks.diagnostics import log_operation
from fastmks.errors import ConstructionError, InvalidArgument
from fastmks.logging import get_logger
from fastmks.queries.dual_tree import dual_tree_search
from fastmks.queries.naive import naive_search
from fastmks.queries.results import TraversalResult, TraversalStats, assemble, validate_k
from fastmks.queries.single_tree import single_tree_search

LOGGER = get_logger("api.search")


def _ensure_points(value: Any, *, label: str) -> np.ndarray:
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"The {label} cannot be read as a float array: {exc}") from exc
    if arr.ndim == 1:
        arr = arr[None, :] if arr.shape[0] else arr.reshape(0, 0)
    if arr.ndim != 2:
        raise InvalidArgument(f"The {label} must be a 2-D array, got shape {arr.shape}.")
    if arr.shape[0] == 0:
        raise InvalidArgument(f"The {label} is empty.")
    if arr.shape[1] == 0:
        raise InvalidArgument(f"The {label} has zero-dimensional points.")
    if not np.all(np.isfinite(arr)):
        raise ConstructionError(f"The {label} contains non-finite values.")
    return arr


def _positive_option(value: Any, default: int, *, name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}.")
    try:
        parsed = operator.index(value)
    except TypeError as exc:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}.") from exc
    if parsed <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {parsed}.")
    return int(parsed)


class FastMaxKernelSearch:
    """Exact top-k max-kernel search over a reference set.

    ``naive_mode`` forces a brute-force scan; otherwise ``single_mode`` selects
    the single-tree traversal and the default is the dual-tree traversal. All
    three modes return identical tables. Without ``queries`` the search is
    monochromatic: every reference point is also a query (and is a candidate
    for itself).
    """

    def __init__(
        self,
        references: Any,
        kernel: Kernel | str | KernelEvaluator | None = None,
        single_mode: bool = False,
        naive_mode: bool = False,
        *,
        queries: Any = None,
        leaf_size: int | None = None,
        query_block: int | None = None,
        workers: int | None = None,
    ) -> None:
        runtime = mks_config.runtime_config()
        self.kernel = as_kernel(kernel)
        self.references = _ensure_points(references, label="reference set")
        self.queries = None if queries is None else self._check_queries(queries)
        self.naive_mode = bool(naive_mode)
        self.single_mode = bool(single_mode)
        self.leaf_size = _positive_option(leaf_size, runtime.leaf_size, name="leaf_size")
        self.query_block = _positive_option(query_block, runtime.query_block, name="query_block")
        self.workers = _positive_option(workers, runtime.workers, name="workers")
        self.last_stats: TraversalStats | None = None

        self._reference_tree: KernelTree | None = None
        self._query_tree: KernelTree | None = None
        if not self.naive_mode:
            self._reference_tree = build_kernel_tree(
                self.references, self.kernel, leaf_size=self.leaf_size
            )
            if self.mode == "dual":
                if self.queries is None:
                    self._query_tree = self._reference_tree
                else:
                    self._query_tree = build_kernel_tree(
                        self.queries, self.kernel, leaf_size=self.leaf_size
                    )

    @property
    def mode(self) -> str:
        if self.naive_mode:
            return "naive"
        return "single" if self.single_mode else "dual"

    @property
    def reference_tree(self) -> KernelTree | None:
        return self._reference_tree

    @property
    def monochromatic(self) -> bool:
        return self.queries is None

    def _require_reference_tree(self) -> KernelTree:
        if self._reference_tree is None:
            raise InvalidArgument("Naive mode keeps no reference tree; tree modes build one.")
        return self._reference_tree

    def _check_queries(self, queries: Any) -> np.ndarray:
        arr = _ensure_points(queries, label="query set")
        if arr.shape[1] != self.references.shape[1]:
            raise InvalidArgument(
                f"Query dimension {arr.shape[1]} does not match reference "
                f"dimension {self.references.shape[1]}."
            )
        return arr

    def search(self, k: int, queries: Any = None) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(indices, values)``, each of shape ``(k, number_of_queries)``.

        Column ``q`` lists the ``k`` reference points with the largest kernel
        value against query ``q``, best first, equal values ordered by
        ascending reference index. ``queries`` runs a one-off search against a
        different query set without replacing the configured one.
        """

        k = validate_k(k, self.references.shape[0])
        if queries is not None:
            query_points = self._check_queries(queries)
            query_tree = None
        else:
            query_points = self.queries if self.queries is not None else self.references
            query_tree = self._query_tree

        with log_operation(LOGGER, "fastmks_search") as op_log:
            result = self._run(k, query_points, query_tree)
            indices, values = assemble(result.candidates)
            op_log.add_metadata(
                mode=self.mode,
                kernel=self.kernel.describe(),
                queries=int(query_points.shape[0]),
                references=int(self.references.shape[0]),
                k=k,
                base_cases=result.stats.base_cases,
                scores=result.stats.scores,
                prunes=result.stats.prunes,
            )
        self.last_stats = result.stats
        return indices, values

    def _run(
        self, k: int, query_points: np.ndarray, query_tree: KernelTree | None
    ) -> TraversalResult:
        if self.mode == "naive":
            return naive_search(
                query_points,
                self.references,
                self.kernel,
                k,
                query_block=self.query_block,
                workers=self.workers,
            )
        reference_tree = self._require_reference_tree()
        if self.mode == "single":
            return single_tree_search(
                query_points,
                reference_tree,
                k,
                query_block=self.query_block,
                workers=self.workers,
            )
        if query_tree is None:
            query_tree = build_kernel_tree(query_points, self.kernel, leaf_size=self.leaf_size)
        return dual_tree_search(query_tree, reference_tree, k, workers=self.workers)


__all__ = ["FastMaxKernelSearch"]
