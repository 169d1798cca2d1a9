"""Bounded worker pool shared by every concurrent stage."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_pool(
    items: Iterable[T],
    func: Callable[[T], list[R]],
    workers: int = 2,
) -> list[R]:
    """
    Run func over every item on a fixed number of threads.

    All items are queued up front. Each call returns a list, and the calling
    thread extends one output list as futures complete, so it is the only
    writer. The call returns once every item is done.

    func must handle its own recoverable errors. Anything it raises is
    re-raised here.

    Args:
        items: Work units
        func: Callable returning the results for one unit
        workers: Number of threads, at least 1

    Returns:
        Concatenated results in completion order
    """
    results: list[R] = []
    items = list(items)
    if not items:
        return results

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = [executor.submit(func, item) for item in items]
        for future in as_completed(futures):
            results.extend(future.result())

    return results
