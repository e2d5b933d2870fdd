import logging

import numpy as np
import pytest
from numpy.random import default_rng

from fastmks import build_kernel_tree, config as mks_config, get_kernel
from fastmks.errors import ConstructionError
from tests.utils.datasets import gaussian_points, integer_points


def _feature_distance(kernel, a, b):
    sq = kernel.self_evaluate(a) + kernel.self_evaluate(b) - 2.0 * kernel.evaluate(a, b)
    return float(np.sqrt(max(sq, 0.0)))


@pytest.mark.parametrize("kernel_name", ["linear", "polynomial", "cosine", "gaussian"])
def test_tree_partitions_dataset(kernel_name):
    points = gaussian_points(default_rng(0), 200, 3)
    tree = build_kernel_tree(points, kernel_name, leaf_size=8)

    assert tree.num_points == 200
    assert tree.dimension == 3
    assert sorted(tree.order.tolist()) == list(range(200))
    assert tree.count(tree.root) == 200
    assert tree.parent[tree.root] == -1

    leaf_members = np.concatenate([tree.members(leaf) for leaf in tree.leaves()])
    assert sorted(leaf_members.tolist()) == list(range(200))

    for node in range(tree.num_nodes):
        if tree.is_leaf(node):
            assert 1 <= tree.count(node) <= 8
            continue
        left, right = tree.children(node)
        assert left > node and right > node
        assert tree.parent[left] == node and tree.parent[right] == node
        assert tree.count(left) > 0 and tree.count(right) > 0
        assert tree.count(left) + tree.count(right) == tree.count(node)
        assert tree.begin[left] == tree.begin[node]
        assert tree.end[right] == tree.end[node]


@pytest.mark.parametrize("kernel_name", ["linear", "polynomial", "gaussian"])
def test_node_statistics_cover_members(kernel_name):
    points = gaussian_points(default_rng(1), 120, 4)
    kernel = get_kernel(kernel_name)
    tree = build_kernel_tree(points, kernel, leaf_size=5)

    for node in range(tree.num_nodes):
        members = tree.members(node)
        center = tree.centers[node]
        assert tree.center_norms[node] == pytest.approx(
            np.sqrt(kernel.self_evaluate(center)), rel=1e-12
        )
        for index in members:
            assert _feature_distance(kernel, points[index], center) <= tree.radii[node] + 1e-9
            assert tree.point_norms[index] <= tree.max_norms[node]


def test_single_point_tree_is_a_leaf():
    tree = build_kernel_tree([[1.0, 2.0]], "linear", leaf_size=1)

    assert tree.num_nodes == 1
    assert tree.is_leaf(tree.root)
    assert tree.children(tree.root).shape == (0,)
    assert tree.depth() == 0
    assert tree.max_norms[0] == pytest.approx(np.sqrt(5.0))


def test_duplicate_points_still_split():
    points = np.ones((40, 2))
    tree = build_kernel_tree(points, "linear", leaf_size=4)

    assert all(tree.count(leaf) <= 4 for leaf in tree.leaves())
    assert sorted(tree.order.tolist()) == list(range(40))
    assert np.allclose(tree.radii, 0.0, atol=1e-4)


def test_integer_grid_tree_is_deterministic():
    points = integer_points(default_rng(5), 90, 3)
    first = build_kernel_tree(points, "polynomial", leaf_size=6)
    second = build_kernel_tree(points.copy(), "polynomial", leaf_size=6)

    assert np.array_equal(first.order, second.order)
    assert np.array_equal(first.left, second.left)
    assert np.allclose(first.radii, second.radii)


def test_leaf_size_defaults_to_runtime(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FASTMKS_LEAF_SIZE", "16")
    mks_config.reset_runtime_config_cache()
    tree = build_kernel_tree(gaussian_points(default_rng(2), 100, 2), "linear")

    assert tree.leaf_size == 16
    assert all(tree.count(leaf) <= 16 for leaf in tree.leaves())


@pytest.mark.parametrize(
    "points",
    [
        np.zeros((0, 3)),
        np.zeros((4, 0)),
        np.zeros(5),
        np.asarray([[0.0, np.nan]]),
        np.asarray([[np.inf, 1.0]]),
    ],
)
def test_invalid_points_raise_construction_error(points):
    with pytest.raises(ConstructionError):
        build_kernel_tree(points, "linear")


@pytest.mark.parametrize("leaf_size", [0, -2, 1.5, True])
def test_invalid_leaf_size(leaf_size):
    with pytest.raises(ConstructionError):
        build_kernel_tree(np.ones((3, 2)), "linear", leaf_size=leaf_size)


def test_construction_error_is_value_error():
    assert issubclass(ConstructionError, ValueError)


def test_tree_build_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="fastmks.core.tree")

    build_kernel_tree(gaussian_points(default_rng(4), 50, 2), "cosine", leaf_size=4)

    records = [record for record in caplog.records if "op=tree_build" in record.message]
    assert records, "expected tree_build operation log"
    message = records[-1].message
    assert "points=50" in message
    assert "leaf_size=4" in message
    assert "kernel=cosine" in message
    assert "wall_ms=" in message
