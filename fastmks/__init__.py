"""fastmks: exact max-kernel search with kernel-norm trees.

Quick Start
-----------
>>> import numpy as np
>>> from fastmks import FastMaxKernelSearch
>>>
>>> points = np.random.randn(1000, 5)
>>> search = FastMaxKernelSearch(points, "linear")          # dual-tree
>>> indices, values = search.search(k=10)                   # (10, 1000) tables

Modes
-----
>>> FastMaxKernelSearch(points, "linear", naive_mode=True)  # brute force
>>> FastMaxKernelSearch(points, "linear", single_mode=True) # single-tree

Kernels
-------
>>> from fastmks import get_kernel
>>> kernel = get_kernel("polynomial", degree=5, offset=2.5)
>>> FastMaxKernelSearch(points, kernel, queries=np.random.randn(50, 5))
"""

from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("fastmks")
except Exception:  # pragma: no cover - best effort during local development
    __version__ = "0.1.0"

from .api import FastMaxKernelSearch
from .core import (
    Kernel,
    KernelTree,
    available_kernels,
    build_kernel_tree,
    get_kernel,
    register_kernel,
)
from .errors import ConstructionError, FastMKSError, InvalidArgument, NumericalError
from .queries import (
    CandidateSets,
    TraversalStats,
    assemble,
    dual_tree_search,
    naive_search,
    single_tree_search,
)

__all__ = [
    "__version__",
    "FastMaxKernelSearch",
    "Kernel",
    "KernelTree",
    "available_kernels",
    "build_kernel_tree",
    "get_kernel",
    "register_kernel",
    "CandidateSets",
    "TraversalStats",
    "assemble",
    "naive_search",
    "single_tree_search",
    "dual_tree_search",
    "FastMKSError",
    "InvalidArgument",
    "ConstructionError",
    "NumericalError",
]
