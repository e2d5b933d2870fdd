"""Upper bounds on the kernel value reachable inside a tree node.

For a positive semi-definite kernel, ``K(x, y) = <phi(x), phi(y)>``. Writing a
reference point as ``phi(r) = phi(c_r) + b`` with ``|b| <= R_r`` (and a query
point likewise around ``c_q`` with radius ``R_q``) gives

    K(q, r) <= K(c_q, c_r) + R_q |phi(c_r)| + R_r |phi(c_q)| + R_q R_r

while Cauchy-Schwarz gives ``K(q, r) <= N_q N_r`` for the largest feature
norms on either side. A single query point is the degenerate node
``c_q = q, R_q = 0, N_q = |phi(q)|``. Both bounds are combined with ``min``.

Every returned bound is padded by a relative slack so that floating-point
rounding cannot turn it into an underestimate. The padded value is strictly
larger than any kernel value inside the node, which is what makes pruning with
``bound <= worst`` safe even for exact ties.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from fastmks.core.kernels import ensure_finite
from fastmks.core.tree import KernelTree

BOUND_SLACK = 1e-9


def _padded(bound: np.ndarray, scale: np.ndarray) -> np.ndarray:
    return bound + BOUND_SLACK * (scale + 1.0)


def combine_bounds(
    center_kernel: np.ndarray,
    query_radius: np.ndarray | float,
    query_center_norm: np.ndarray | float,
    query_max_norm: np.ndarray | float,
    reference_radius: np.ndarray | float,
    reference_center_norm: np.ndarray | float,
    reference_max_norm: np.ndarray | float,
) -> np.ndarray:
    """Combine cached node statistics into padded kernel upper bounds.

    All arguments broadcast against ``center_kernel``, which holds
    ``K(c_q, c_r)`` for every (query side, reference side) pairing.
    """

    spread = (
        query_radius * reference_center_norm
        + reference_radius * query_center_norm
        + query_radius * reference_radius
    )
    center_scale = np.abs(center_kernel) + spread + query_center_norm * reference_center_norm
    center_bound = _padded(center_kernel + spread, center_scale)
    norm_product = query_max_norm * reference_max_norm
    norm_bound = _padded(norm_product, norm_product)
    return np.minimum(center_bound, norm_bound)


def point_node_bounds(
    tree: KernelTree,
    nodes: Sequence[int] | np.ndarray,
    query_points: np.ndarray,
    query_norms: np.ndarray,
) -> np.ndarray:
    """Bound ``K(q, r)`` for each query point against each node in ``nodes``.

    Returns an array of shape ``(len(query_points), len(nodes))``.
    """

    node_ids = np.asarray(nodes, dtype=np.int64)
    center_kernel = ensure_finite(
        tree.kernel.pairwise(query_points, tree.centers[node_ids]),
        what="point-node bounds",
    )
    norms = np.asarray(query_norms, dtype=np.float64)[:, None]
    return combine_bounds(
        center_kernel,
        0.0,
        norms,
        norms,
        tree.radii[node_ids][None, :],
        tree.center_norms[node_ids][None, :],
        tree.max_norms[node_ids][None, :],
    )


def node_pair_bounds(
    query_tree: KernelTree,
    query_nodes: Sequence[int] | np.ndarray,
    reference_tree: KernelTree,
    reference_nodes: Sequence[int] | np.ndarray,
) -> np.ndarray:
    """Bound ``K(q, r)`` over every query node x reference node pairing.

    Returns an array of shape ``(len(query_nodes), len(reference_nodes))``.
    """

    q_ids = np.asarray(query_nodes, dtype=np.int64)
    r_ids = np.asarray(reference_nodes, dtype=np.int64)
    center_kernel = ensure_finite(
        reference_tree.kernel.pairwise(
            query_tree.centers[q_ids], reference_tree.centers[r_ids]
        ),
        what="node-pair bounds",
    )
    return combine_bounds(
        center_kernel,
        query_tree.radii[q_ids][:, None],
        query_tree.center_norms[q_ids][:, None],
        query_tree.max_norms[q_ids][:, None],
        reference_tree.radii[r_ids][None, :],
        reference_tree.center_norms[r_ids][None, :],
        reference_tree.max_norms[r_ids][None, :],
    )


__all__ = ["BOUND_SLACK", "combine_bounds", "node_pair_bounds", "point_node_bounds"]
