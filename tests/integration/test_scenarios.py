from __future__ import annotations

import numpy as np
from numpy.random import default_rng

from fastmks import FastMaxKernelSearch, get_kernel
from tests.utils.datasets import gaussian_points, uniform_points


def _assert_same_tables(lhs, rhs) -> None:
    lhs_indices, lhs_values = lhs
    rhs_indices, rhs_values = rhs
    assert lhs_indices.shape == rhs_indices.shape
    assert np.array_equal(lhs_indices, rhs_indices)
    assert np.allclose(lhs_values, rhs_values, rtol=1e-12, atol=0.0)


def test_single_tree_matches_naive_linear_5d():
    points = gaussian_points(default_rng(1_000), 1_000, 5)
    kernel = get_kernel("linear")

    naive = FastMaxKernelSearch(points, kernel, naive_mode=True).search(10)
    single = FastMaxKernelSearch(points, kernel, single_mode=True).search(10)

    assert naive[0].shape == (10, 1_000)
    _assert_same_tables(single, naive)


def test_dual_tree_matches_naive_linear_10d():
    points = gaussian_points(default_rng(5_000), 5_000, 10)
    kernel = get_kernel("linear")

    naive = FastMaxKernelSearch(points, kernel, naive_mode=True).search(10)
    dual = FastMaxKernelSearch(points, kernel).search(10)

    assert dual[0].shape == (10, 5_000)
    _assert_same_tables(dual, naive)


def test_dual_tree_matches_single_tree_polynomial_20d():
    points = uniform_points(default_rng(15_000), 15_000, 20)
    kernel = get_kernel("polynomial", degree=5, offset=2.5)

    dual_search = FastMaxKernelSearch(points, kernel)
    single_search = FastMaxKernelSearch(points, kernel, single_mode=True)
    dual = dual_search.search(10)
    single = single_search.search(10)

    assert single[0].shape == (10, 15_000)
    _assert_same_tables(dual, single)
    assert dual_search.last_stats.base_cases <= 15_000 * 15_000
    assert single_search.last_stats.base_cases <= 15_000 * 15_000
