"""Bounded worker pool for per-ticker and per-order work."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from .constants import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WorkResult(Generic[T]):
    """Outcome of one item: its return value or the error that stopped it."""

    item: T
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_bounded(
    func: Callable[[T], Any],
    items: Sequence[T],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[WorkResult[T]]:
    """
    Run `func` over `items` on at most `max_workers` threads.

    Any exception raised for one item is logged and returned in that
    item's WorkResult, so siblings always finish. Results come back in
    input order after every item has finished.
    """
    if not items:
        return []

    results: List[Optional[WorkResult[T]]] = [None] * len(items)
    workers = max(1, min(max_workers, len(items)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(func, item): i for i, item in enumerate(items)}
        for future in as_completed(futures):
            index = futures[future]
            item = items[index]
            try:
                results[index] = WorkResult(item, value=future.result())
            except Exception as e:
                logger.error(f"Worker failed for {item}: {e}", exc_info=True)
                results[index] = WorkResult(item, error=e)

    succeeded = sum(1 for r in results if r and r.ok)
    logger.info(f"Worker pool finished: {succeeded}/{len(items)} succeeded")
    return [r for r in results if r is not None]
