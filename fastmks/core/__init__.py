"""Kernels, the kernel-norm tree and its node bounds."""

from .bounds import BOUND_SLACK, combine_bounds, node_pair_bounds, point_node_bounds
from .kernels import (
    Kernel,
    KernelEvaluator,
    KernelRegistry,
    as_kernel,
    available_kernels,
    cosine_kernel,
    from_evaluator,
    gaussian_kernel,
    get_kernel,
    linear_kernel,
    polynomial_kernel,
    register_kernel,
)
from .tree import KernelTree, build_kernel_tree

__all__ = [
    "BOUND_SLACK",
    "Kernel",
    "KernelEvaluator",
    "KernelRegistry",
    "KernelTree",
    "as_kernel",
    "available_kernels",
    "build_kernel_tree",
    "combine_bounds",
    "cosine_kernel",
    "from_evaluator",
    "gaussian_kernel",
    "get_kernel",
    "linear_kernel",
    "node_pair_bounds",
    "point_node_bounds",
    "polynomial_kernel",
    "register_kernel",
]
