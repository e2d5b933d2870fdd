import numpy as np
import pytest

from fastmks.errors import InvalidArgument
from fastmks.queries.results import (
    CandidateSets,
    TraversalStats,
    assemble,
    top_k_rows,
    validate_k,
)


def test_validate_k_bounds():
    assert validate_k(3, 5) == 3
    assert validate_k(np.int64(5), 5) == 5
    for bad in (0, -1, 6, 2.5, True, "3", None):
        with pytest.raises(InvalidArgument):
            validate_k(bad, 5)


def test_top_k_rows_breaks_ties_by_index():
    values = np.asarray([[1.0, 3.0, 3.0, 2.0, 3.0]])
    indices = np.asarray([[10, 7, 2, 4, 5]])

    top_values, top_indices = top_k_rows(values, indices, 2)

    assert top_values.tolist() == [[3.0, 3.0]]
    assert top_indices.tolist() == [[2, 5]]


def test_top_k_rows_keeps_narrow_rows_sorted():
    values = np.asarray([[0.5, 2.0], [1.0, 1.0]])
    indices = np.asarray([[1, 0], [9, 3]])

    top_values, top_indices = top_k_rows(values, indices, 4)

    assert top_values.tolist() == [[2.0, 0.5], [1.0, 1.0]]
    assert top_indices.tolist() == [[0, 1], [3, 9]]


def test_candidate_sets_start_empty():
    candidates = CandidateSets(3, 2)

    assert candidates.num_queries == 3
    assert np.all(np.isneginf(candidates.worst()))
    assert candidates.sizes().tolist() == [0, 0, 0]
    with pytest.raises(InvalidArgument):
        CandidateSets(1, 0)


def test_offer_keeps_best_k_and_reports_changes():
    candidates = CandidateSets(2, 2)

    changed = candidates.offer(np.asarray([0, 1]), np.asarray([0, 1, 2]), [[1.0, 5.0, 3.0], [2.0, 2.0, 2.0]])

    assert changed == 2
    assert candidates.indices.tolist() == [[1, 2], [0, 1]]
    assert candidates.values.tolist() == [[5.0, 3.0], [2.0, 2.0]]
    assert candidates.worst().tolist() == [3.0, 2.0]

    # Equal value with a larger index does not displace the worst entry.
    assert candidates.offer(np.asarray([1]), np.asarray([7]), [[2.0]]) == 0
    assert candidates.indices[1].tolist() == [0, 1]
    # Strictly smaller values are ignored outright.
    assert candidates.offer(np.asarray([0]), np.asarray([9]), [[2.5]]) == 0


def test_offer_equal_value_smaller_index_wins():
    candidates = CandidateSets(1, 2)
    candidates.offer(np.asarray([0]), np.asarray([4, 6]), [[1.0, 1.0]])

    assert candidates.offer(np.asarray([0]), np.asarray([5]), [[1.0]]) == 1
    assert candidates.indices.tolist() == [[4, 5]]


def test_offer_accepts_per_row_indices():
    candidates = CandidateSets(2, 1)

    candidates.offer(np.asarray([1, 0]), np.asarray([[3, 4], [8, 9]]), [[0.1, 0.9], [0.7, 0.2]])

    assert candidates.indices.tolist() == [[8], [4]]


def test_concatenate_requires_matching_capacity():
    first = CandidateSets(1, 2)
    second = CandidateSets(2, 2)

    joined = CandidateSets.concatenate([first, second])

    assert joined.num_queries == 3
    with pytest.raises(InvalidArgument):
        CandidateSets.concatenate([first, CandidateSets(1, 3)])
    with pytest.raises(InvalidArgument):
        CandidateSets.concatenate([])


def test_assemble_transposes_to_k_by_queries():
    candidates = CandidateSets(2, 3)
    candidates.offer(
        np.asarray([0, 1]),
        np.asarray([0, 1, 2, 3]),
        [[0.1, 0.4, 0.4, 0.3], [1.0, 0.0, -1.0, 2.0]],
    )

    indices, values = assemble(candidates)

    assert indices.shape == (3, 2) and values.shape == (3, 2)
    assert indices[:, 0].tolist() == [1, 2, 3]
    assert indices[:, 1].tolist() == [3, 0, 1]
    assert values[:, 1].tolist() == [2.0, 1.0, 0.0]
    assert indices.flags["C_CONTIGUOUS"] and values.flags["C_CONTIGUOUS"]


def test_assemble_joins_partial_sets_in_order():
    first = CandidateSets(1, 1)
    second = CandidateSets(1, 1)
    first.offer(np.asarray([0]), np.asarray([4]), [[1.0]])
    second.offer(np.asarray([0]), np.asarray([2]), [[3.0]])

    indices, _ = assemble([first, second])

    assert indices.tolist() == [[4, 2]]


def test_assemble_rejects_unfilled_sets():
    candidates = CandidateSets(2, 2)
    candidates.offer(np.asarray([0, 1]), np.asarray([0, 1]), [[1.0, 2.0], [1.0, 2.0]])
    candidates.indices[1, 1] = -1

    with pytest.raises(InvalidArgument):
        assemble(candidates)


def test_traversal_stats_total():
    parts = [
        TraversalStats(mode="x", base_cases=3, scores=2, prunes=1),
        TraversalStats(mode="y", base_cases=4, scores=0, prunes=5),
    ]

    total = TraversalStats.total("dual", parts)

    assert total == TraversalStats(mode="dual", base_cases=7, scores=2, prunes=6)
