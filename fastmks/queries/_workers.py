from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def query_blocks(num_queries: int, block_size: int) -> List[np.ndarray]:
    """Split ``range(num_queries)`` into consecutive index blocks."""

    return [
        np.arange(start, min(start + block_size, num_queries), dtype=np.int64)
        for start in range(0, num_queries, block_size)
    ]


def run_tasks(tasks: Sequence[Callable[[], T]], workers: int) -> List[T]:
    """Run independent tasks, optionally on a thread pool.

    Results come back in task order regardless of completion order, and the
    first task exception is re-raised in the caller.
    """

    if workers <= 1 or len(tasks) <= 1:
        return [task() for task in tasks]
    with ThreadPoolExecutor(max_workers=min(workers, len(tasks))) as pool:
        futures = [pool.submit(task) for task in tasks]
        return [future.result() for future in futures]


__all__ = ["query_blocks", "run_tasks"]
