from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class Outcome(Generic[T, R]):
    """Result of one fanned-out call: either a value or the error it raised."""

    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(func: Callable[[T], R], items: Sequence[T], max_workers: int = 8) -> List[Outcome]:
    """Run ``func`` on every item concurrently and wait for all of them.

    Args:
        func: Callable applied to each item
        items: Inputs; one call per item
        max_workers: Upper bound on worker threads

    Returns:
        One Outcome per item, in input order. Exceptions are captured per
        item and never raised from here.
    """
    if not items:
        return []

    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(func, item) for item in items]

    outcomes: List[Outcome[Any, Any]] = []
    for item, future in zip(items, futures):
        error = future.exception()
        if error is not None:
            outcomes.append(Outcome(item=item, error=error))
        else:
            outcomes.append(Outcome(item=item, value=future.result()))
    return outcomes
