from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

import numpy as np

from fastmks import config as mks_config
from fastmks.core.kernels import Kernel, KernelEvaluator, as_kernel, ensure_finite
from fastmks.diagnostics import log_operation
from fastmks.errors import ConstructionError
from fastmks.logging import get_logger

LOGGER = get_logger("core.tree")

# Relative slack added to squared feature-space distances before taking the
# radius, so rounding in K(r,r) + K(c,c) - 2K(r,c) never shrinks a radius.
DISTANCE_SLACK = 1e-10


@dataclass(frozen=True)
class KernelTree:
    """Binary metric tree over the feature space induced by a kernel.

    Nodes live in flat arrays addressed by node id (root is ``0``). Every node
    owns the contiguous slice ``order[begin:end]`` of dataset indices; children
    always have larger ids than their parent and ``parent`` is ``-1`` at the
    root. Per node the tree caches:

    * ``centers``: the input-space mean of the node's points (the pivot),
    * ``center_norms``: ``sqrt(K(c, c))`` for that pivot,
    * ``radii``: an upper bound on ``|phi(r) - phi(c)|`` over the node's points,
    * ``max_norms``: an upper bound on ``sqrt(K(r, r))`` over the node's points.
    """

    points: np.ndarray
    kernel: Kernel
    leaf_size: int
    order: np.ndarray
    begin: np.ndarray
    end: np.ndarray
    left: np.ndarray
    right: np.ndarray
    parent: np.ndarray
    centers: np.ndarray
    center_norms: np.ndarray
    radii: np.ndarray
    max_norms: np.ndarray
    point_norms: np.ndarray

    @property
    def root(self) -> int:
        return 0

    @property
    def num_nodes(self) -> int:
        return int(self.begin.shape[0])

    @property
    def num_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def dimension(self) -> int:
        return int(self.points.shape[1])

    def is_leaf(self, node: int) -> bool:
        return bool(self.left[node] < 0)

    def count(self, node: int) -> int:
        return int(self.end[node] - self.begin[node])

    def members(self, node: int) -> np.ndarray:
        """Dataset indices of every point under ``node``."""

        return self.order[self.begin[node] : self.end[node]]

    def children(self, node: int) -> np.ndarray:
        if self.is_leaf(node):
            return np.empty(0, dtype=np.int64)
        return np.asarray([self.left[node], self.right[node]], dtype=np.int64)

    def leaves(self) -> np.ndarray:
        return np.flatnonzero(self.left < 0).astype(np.int64)

    def depth(self) -> int:
        depths = np.zeros(self.num_nodes, dtype=np.int64)
        for node in range(1, self.num_nodes):
            depths[node] = depths[self.parent[node]] + 1
        return int(depths.max()) if depths.size else 0


def _as_tree_points(points: Any) -> np.ndarray:
    try:
        arr = np.asarray(points, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConstructionError(f"Cannot interpret points as a float array: {exc}") from exc
    if arr.ndim != 2:
        raise ConstructionError(f"Tree points must be a 2-D array, got shape {arr.shape}.")
    if arr.shape[0] == 0:
        raise ConstructionError("Cannot build a kernel tree over an empty dataset.")
    if arr.shape[1] == 0:
        raise ConstructionError("Cannot build a kernel tree over zero-dimensional points.")
    if not np.all(np.isfinite(arr)):
        raise ConstructionError("Tree points contain non-finite values.")
    return arr


def _feature_radius(
    self_kernel: np.ndarray, center_self: float, cross: np.ndarray
) -> float:
    sq_dist = self_kernel + center_self - 2.0 * cross
    slack = DISTANCE_SLACK * (np.abs(self_kernel) + abs(center_self) + 2.0 * np.abs(cross))
    return float(np.sqrt(max(float(np.max(sq_dist + slack)), 0.0)))


def _split_members(
    members: np.ndarray,
    self_kernel: np.ndarray,
    center_sq_dist: np.ndarray,
    kernel: Kernel,
) -> np.ndarray:
    """Return a mask assigning each member to the left child.

    Two far-apart pivots are picked in feature space (the member farthest from
    the centre, then the member farthest from that one) and every point joins
    the nearer pivot. Degenerate splits fall back to halving by position.
    """

    count = members.shape[0]
    halves = np.arange(count) < count // 2

    first = int(np.argmax(center_sq_dist))
    to_first = self_kernel + self_kernel[first] - 2.0 * ensure_finite(
        kernel.pairwise(members, members[first])[:, 0], what="node splits"
    )
    second = int(np.argmax(to_first))
    if not to_first[second] > 0.0:
        return halves
    to_second = self_kernel + self_kernel[second] - 2.0 * ensure_finite(
        kernel.pairwise(members, members[second])[:, 0], what="node splits"
    )

    go_left = to_first <= to_second
    left_count = int(np.count_nonzero(go_left))
    if left_count == 0 or left_count == count:
        return halves
    return go_left


def _build_arrays(points: np.ndarray, kernel: Kernel, leaf_size: int) -> KernelTree:
    num_points, dimension = points.shape
    self_kernel = ensure_finite(kernel.diagonal(points), what="self-kernels")
    point_norms = np.sqrt(np.maximum(self_kernel, 0.0))
    order = np.arange(num_points, dtype=np.int64)

    begin: List[int] = []
    end: List[int] = []
    left: List[int] = []
    right: List[int] = []
    parent: List[int] = []
    centers: List[np.ndarray] = []
    center_norms: List[float] = []
    radii: List[float] = []

    def _new_node(start: int, stop: int, parent_id: int) -> int:
        begin.append(start)
        end.append(stop)
        left.append(-1)
        right.append(-1)
        parent.append(parent_id)
        centers.append(np.zeros(dimension, dtype=np.float64))
        center_norms.append(0.0)
        radii.append(0.0)
        return len(begin) - 1

    stack = [_new_node(0, num_points, -1)]
    while stack:
        node = stack.pop()
        start, stop = begin[node], end[node]
        idx = order[start:stop]
        members = points[idx]
        member_self = self_kernel[idx]

        center = members.mean(axis=0)
        center_self = float(ensure_finite(kernel.diagonal(center), what="node pivots")[0])
        cross = ensure_finite(kernel.pairwise(members, center)[:, 0], what="node radii")
        centers[node] = center
        center_norms[node] = float(np.sqrt(max(center_self, 0.0)))
        radii[node] = _feature_radius(member_self, center_self, cross)

        if stop - start <= leaf_size:
            continue

        go_left = _split_members(
            members,
            member_self,
            member_self + center_self - 2.0 * cross,
            kernel,
        )
        order[start:stop] = np.concatenate((idx[go_left], idx[~go_left]))
        middle = start + int(np.count_nonzero(go_left))
        left_id = _new_node(start, middle, node)
        right_id = _new_node(middle, stop, node)
        left[node] = left_id
        right[node] = right_id
        stack.append(right_id)
        stack.append(left_id)

    left_arr = np.asarray(left, dtype=np.int64)
    right_arr = np.asarray(right, dtype=np.int64)
    begin_arr = np.asarray(begin, dtype=np.int64)
    end_arr = np.asarray(end, dtype=np.int64)

    # Children always follow their parent, so one reverse sweep folds the
    # leaf norms upwards.
    max_norms = np.zeros(len(begin), dtype=np.float64)
    for node in range(len(begin) - 1, -1, -1):
        if left_arr[node] < 0:
            max_norms[node] = float(np.max(point_norms[order[begin_arr[node] : end_arr[node]]]))
        else:
            max_norms[node] = max(max_norms[left_arr[node]], max_norms[right_arr[node]])

    return KernelTree(
        points=points,
        kernel=kernel,
        leaf_size=leaf_size,
        order=order,
        begin=begin_arr,
        end=end_arr,
        left=left_arr,
        right=right_arr,
        parent=np.asarray(parent, dtype=np.int64),
        centers=np.vstack(centers),
        center_norms=np.asarray(center_norms, dtype=np.float64),
        radii=np.asarray(radii, dtype=np.float64),
        max_norms=max_norms,
        point_norms=point_norms,
    )


def build_kernel_tree(
    points: Any,
    kernel: Kernel | str | KernelEvaluator | None = None,
    *,
    leaf_size: int | None = None,
) -> KernelTree:
    """Build a :class:`KernelTree` over ``points`` (an ``(n, d)`` array).

    The points are referenced, not copied, when they already form a float64
    array. Raises :class:`ConstructionError` on empty, malformed or non-finite
    input.
    """

    kernel_obj = as_kernel(kernel)
    if leaf_size is None:
        leaf_size = mks_config.runtime_config().leaf_size
    if isinstance(leaf_size, bool) or int(leaf_size) != leaf_size or leaf_size <= 0:
        raise ConstructionError(f"leaf_size must be a positive integer, got {leaf_size}.")
    arr = _as_tree_points(points)

    with log_operation(LOGGER, "tree_build") as op_log:
        tree = _build_arrays(arr, kernel_obj, int(leaf_size))
        op_log.add_metadata(
            points=tree.num_points,
            dimension=tree.dimension,
            nodes=tree.num_nodes,
            leaves=int(tree.leaves().shape[0]),
            depth=tree.depth(),
            leaf_size=tree.leaf_size,
            kernel=kernel_obj.describe(),
        )
    return tree


__all__ = ["DISTANCE_SLACK", "KernelTree", "build_kernel_tree"]
