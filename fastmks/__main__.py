#!/usr/bin/env python
"""Quick-start guide for fastmks.

Run with: python -m fastmks

This module avoids importing fastmks internals so the help text prints
without building anything.
"""

from __future__ import annotations

QUICKSTART = """\
================================================================================
                                   FASTMKS
            Exact max-kernel search with naive, single- and dual-tree
================================================================================

BASIC USAGE
-----------
    import numpy as np
    from fastmks import FastMaxKernelSearch

    points = np.random.randn(5000, 10)

    # Dual-tree (default): every point queries the whole set
    search = FastMaxKernelSearch(points, "linear")
    indices, values = search.search(k=10)     # both shaped (10, 5000)

    # Column q holds query q's best matches, best first; equal kernel
    # values are ordered by ascending reference index.

MODES
-----
    FastMaxKernelSearch(points, "linear", naive_mode=True)    # brute force
    FastMaxKernelSearch(points, "linear", single_mode=True)   # single-tree
    FastMaxKernelSearch(points, "linear")                     # dual-tree

    search.last_stats   # base_cases / scores / prunes of the last search

KERNELS
-------
    from fastmks import get_kernel, available_kernels

    available_kernels()   # ('cosine', 'gaussian', 'linear', 'polynomial')
    kernel = get_kernel("polynomial", degree=5, offset=2.5)
    search = FastMaxKernelSearch(points, kernel, queries=np.random.randn(100, 10))

    # Any object with evaluate(a, b) (and optionally self_evaluate(a)) works
    # too, provided it is a symmetric positive semi-definite kernel.

CONFIGURATION
-------------
    FASTMKS_LEAF_SIZE         points per tree leaf          (default 64)
    FASTMKS_QUERY_BLOCK       queries batched per descent   (default 256)
    FASTMKS_REFERENCE_BLOCK   naive reference chunk width   (default 4096)
    FASTMKS_WORKERS           worker threads                (default 1)
    FASTMKS_KERNEL            default kernel name           (default linear)
    FASTMKS_LOG_LEVEL         logging level                 (default INFO)
    FASTMKS_ENABLE_DIAGNOSTICS  CPU/RSS sampling in logs    (default on)

BENCHMARKING CLI
----------------
    python -m cli.fastmks --points 5000 --dimension 10 --k 10 --mode all --verify

================================================================================
"""


def main() -> None:
    """Print quick-start guide."""
    print(QUICKSTART)


if __name__ == "__main__":
    main()
