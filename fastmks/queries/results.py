from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Tuple

import numpy as np

from fastmks.errors import InvalidArgument

_EMPTY_INDEX = -1


def validate_k(k: Any, num_references: int) -> int:
    """Return ``k`` as an int, raising :class:`InvalidArgument` unless ``0 < k <= n``."""

    if isinstance(k, bool):
        raise InvalidArgument(f"k must be an integer, got {k!r}.")
    try:
        value = operator.index(k)
    except TypeError as exc:
        raise InvalidArgument(f"k must be an integer, got {k!r}.") from exc
    if value <= 0:
        raise InvalidArgument(f"k must be positive, got {value}.")
    if value > num_references:
        raise InvalidArgument(
            f"k={value} exceeds the number of reference points ({num_references})."
        )
    return int(value)


def top_k_rows(
    values: np.ndarray, indices: np.ndarray, k: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Select the best ``k`` entries of each row, sorted.

    Entries are ranked by descending value and, for equal values, by
    ascending index. Rows narrower than ``k`` are returned whole.
    """

    width = values.shape[1]
    if width > k:
        selected = np.argpartition(-values, k - 1, axis=1)[:, :k]
        sel_values = np.take_along_axis(values, selected, axis=1)
        sel_indices = np.take_along_axis(indices, selected, axis=1)
        # argpartition picks arbitrarily among values equal to the k-th best;
        # those rows are re-ranked in full so the smaller index wins.
        kth = sel_values.min(axis=1)
        tied = np.flatnonzero(np.count_nonzero(values >= kth[:, None], axis=1) > k)
        if tied.size:
            order = np.lexsort((indices[tied], -values[tied]), axis=1)[:, :k]
            sel_values[tied] = np.take_along_axis(values[tied], order, axis=1)
            sel_indices[tied] = np.take_along_axis(indices[tied], order, axis=1)
        values, indices = sel_values, sel_indices
    order = np.lexsort((indices, -values), axis=1)
    return (
        np.take_along_axis(values, order, axis=1),
        np.take_along_axis(indices, order, axis=1),
    )


class CandidateSets:
    """Bounded top-k candidate lists, one row per query.

    Row ``i`` holds the best ``k`` (index, kernel value) pairs seen so far for
    query ``i``, sorted best first. Unfilled slots carry index ``-1`` and value
    ``-inf``, so ``worst()`` is the k-th best value or ``-inf`` while a row is
    not yet full. Each row must have a single writer at a time.
    """

    __slots__ = ("k", "values", "indices")

    def __init__(self, num_queries: int, k: int) -> None:
        if k <= 0:
            raise InvalidArgument(f"Candidate sets need a positive capacity, got {k}.")
        self.k = int(k)
        self.values = np.full((num_queries, self.k), -np.inf, dtype=np.float64)
        self.indices = np.full((num_queries, self.k), _EMPTY_INDEX, dtype=np.int64)

    @property
    def num_queries(self) -> int:
        return int(self.values.shape[0])

    def worst(self, rows: np.ndarray | None = None) -> np.ndarray:
        if rows is None:
            return self.values[:, -1]
        return self.values[rows, -1]

    def sizes(self) -> np.ndarray:
        return np.count_nonzero(self.indices != _EMPTY_INDEX, axis=1)

    def offer(self, rows: np.ndarray, indices: np.ndarray, values: np.ndarray) -> int:
        """Merge candidate ``values`` (one row per entry of ``rows``) into the sets.

        ``indices`` is either shared by every row (1-D) or given per row (2-D).
        A candidate enters a full row only when it beats the current worst
        entry: a larger value, or an equal value with a smaller index.
        Returns the number of rows whose contents changed.
        """

        rows = np.asarray(rows, dtype=np.int64)
        values = np.asarray(values, dtype=np.float64)
        indices = np.asarray(indices, dtype=np.int64)
        if indices.ndim == 1:
            indices = np.broadcast_to(indices, values.shape)

        worst = self.values[rows, -1]
        useful = np.any(values >= worst[:, None], axis=1)
        if not np.any(useful):
            return 0
        if not np.all(useful):
            rows = rows[useful]
            values = values[useful]
            indices = indices[useful]

        if values.shape[1] > self.k:
            values, indices = top_k_rows(values, indices, self.k)
        merged_values, merged_indices = top_k_rows(
            np.concatenate((self.values[rows], values), axis=1),
            np.concatenate((self.indices[rows], indices), axis=1),
            self.k,
        )
        changed = np.any(merged_indices != self.indices[rows], axis=1)
        self.values[rows] = merged_values
        self.indices[rows] = merged_indices
        return int(np.count_nonzero(changed))

    @classmethod
    def concatenate(cls, parts: Sequence["CandidateSets"]) -> "CandidateSets":
        if not parts:
            raise InvalidArgument("Cannot concatenate an empty sequence of candidate sets.")
        k = parts[0].k
        if any(part.k != k for part in parts):
            raise InvalidArgument("Candidate sets with different capacities cannot be joined.")
        joined = cls(0, k)
        joined.values = np.concatenate([part.values for part in parts], axis=0)
        joined.indices = np.concatenate([part.indices for part in parts], axis=0)
        return joined


@dataclass(frozen=True)
class TraversalStats:
    """Work counters reported by a traversal."""

    mode: str
    base_cases: int = 0
    scores: int = 0
    prunes: int = 0

    def __add__(self, other: "TraversalStats") -> "TraversalStats":
        return TraversalStats(
            mode=self.mode,
            base_cases=self.base_cases + other.base_cases,
            scores=self.scores + other.scores,
            prunes=self.prunes + other.prunes,
        )

    @classmethod
    def total(cls, mode: str, parts: Iterable["TraversalStats"]) -> "TraversalStats":
        result = cls(mode=mode)
        for part in parts:
            result = result + part
        return result


@dataclass(frozen=True)
class TraversalResult:
    candidates: CandidateSets
    stats: TraversalStats


def assemble(
    candidates: CandidateSets | Sequence[CandidateSets],
) -> Tuple[np.ndarray, np.ndarray]:
    """Turn candidate sets into ``(indices, values)`` tables of shape ``(k, queries)``.

    Column ``q`` lists query ``q``'s matches by descending kernel value, ties
    broken by ascending reference index.
    """

    if isinstance(candidates, CandidateSets):
        joined = candidates
    else:
        joined = CandidateSets.concatenate(list(candidates))
    if np.any(joined.indices == _EMPTY_INDEX):
        short = int(np.flatnonzero(np.any(joined.indices == _EMPTY_INDEX, axis=1))[0])
        raise InvalidArgument(
            f"Candidate set for query {short} holds fewer than k={joined.k} entries."
        )
    values, indices = top_k_rows(joined.values, joined.indices, joined.k)
    return np.ascontiguousarray(indices.T), np.ascontiguousarray(values.T)


__all__ = [
    "CandidateSets",
    "TraversalResult",
    "TraversalStats",
    "assemble",
    "top_k_rows",
    "validate_k",
]
