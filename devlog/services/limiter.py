"""Bounded concurrency for outbound writes"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

I = TypeVar("I")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 3


@dataclass
class Settled(Generic[I, R]):
    """Outcome of one unit of work: either `value` or `error` is set."""

    item: I
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ConcurrencyLimiter:
    """Run units of work with at most `max_workers` in flight.

    Queued work starts in submission order; completion order is not
    guaranteed. Results are always reported in submission order.
    """

    def __init__(self, max_workers: int = DEFAULT_CONCURRENCY):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="devlog-sync")

    def __enter__(self) -> "ConcurrencyLimiter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        """Wait for in-flight work and release the worker threads."""
        self._executor.shutdown(wait=True)

    def map_settled(self, fn: Callable[[I], R], items: Iterable[I]) -> List[Settled[I, R]]:
        """Run `fn` over `items`; one failure never cancels the others."""
        submitted = [(item, self._executor.submit(fn, item)) for item in items]
        results: List[Settled[I, R]] = []
        for item, future in submitted:
            try:
                results.append(Settled(item=item, value=future.result()))
            except Exception as e:
                results.append(Settled(item=item, error=e))
        return results
