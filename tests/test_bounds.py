import numpy as np
import pytest
from numpy.random import default_rng

from fastmks import build_kernel_tree, get_kernel
from fastmks.core.bounds import combine_bounds, node_pair_bounds, point_node_bounds
from tests.utils.datasets import gaussian_points, integer_points, uniform_points

KERNELS = [
    ("linear", {}),
    ("polynomial", {"degree": 3, "offset": 1.0}),
    ("cosine", {}),
    ("gaussian", {"bandwidth": 0.8}),
]


@pytest.mark.parametrize("name,params", KERNELS)
def test_point_node_bound_dominates_members(name, params):
    rng = default_rng(11)
    kernel = get_kernel(name, **params)
    references = gaussian_points(rng, 150, 3)
    queries = gaussian_points(rng, 20, 3)
    tree = build_kernel_tree(references, kernel, leaf_size=6)
    norms = np.sqrt(kernel.diagonal(queries))
    nodes = np.arange(tree.num_nodes)

    bounds = point_node_bounds(tree, nodes, queries, norms)
    gram = kernel.pairwise(queries, references)

    assert bounds.shape == (20, tree.num_nodes)
    for node in nodes:
        best = gram[:, tree.members(node)].max(axis=1)
        assert np.all(bounds[:, node] > best)


@pytest.mark.parametrize("name,params", KERNELS)
def test_node_pair_bound_dominates_members(name, params):
    rng = default_rng(12)
    kernel = get_kernel(name, **params)
    references = uniform_points(rng, 90, 2, low=-1.0, high=1.0)
    queries = uniform_points(rng, 60, 2, low=-1.0, high=1.0)
    rtree = build_kernel_tree(references, kernel, leaf_size=5)
    qtree = build_kernel_tree(queries, kernel, leaf_size=5)
    gram = kernel.pairwise(queries, references)

    bounds = node_pair_bounds(
        qtree, np.arange(qtree.num_nodes), rtree, np.arange(rtree.num_nodes)
    )

    assert bounds.shape == (qtree.num_nodes, rtree.num_nodes)
    for qnode in range(qtree.num_nodes):
        block = gram[qtree.members(qnode)]
        for rnode in range(rtree.num_nodes):
            assert bounds[qnode, rnode] > block[:, rtree.members(rnode)].max()


def test_bounds_are_strict_on_exact_ties():
    points = integer_points(default_rng(3), 40, 2, high=2)
    kernel = get_kernel("linear")
    tree = build_kernel_tree(points, kernel, leaf_size=1)
    norms = np.sqrt(kernel.diagonal(points))

    bounds = point_node_bounds(tree, tree.leaves(), points, norms)
    leaf_points = np.asarray([tree.members(leaf)[0] for leaf in tree.leaves()])
    exact = kernel.pairwise(points, points[leaf_points])

    assert np.all(bounds > exact)


def test_combine_bounds_takes_tighter_of_two():
    center_kernel = np.asarray([[1.0]])

    loose_norms = combine_bounds(center_kernel, 0.0, 1.0, 1.0, 0.5, 1.0, 10.0)
    loose_center = combine_bounds(center_kernel, 0.0, 1.0, 1.0, 5.0, 1.0, 1.2)

    assert loose_norms[0, 0] == pytest.approx(1.5)
    assert loose_center[0, 0] == pytest.approx(1.2)
