"""Partial-failure batch execution shared by pricing and validation."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, List, Optional, Tuple, TypeVar

from .utils.logging import get_logger

logger = get_logger(__name__)

I = TypeVar("I")
T = TypeVar("T")


@dataclass
class BatchResult(Generic[I, T]):
    """Outcome of a batch: what worked, what failed and why."""

    succeeded: List[T] = field(default_factory=list)
    failed: List[Tuple[I, Exception]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def errors(self) -> List[str]:
        return [f"{item!r}: {exc}" for item, exc in self.failed]


def run_batch(
    items: Iterable[I],
    func: Callable[[I], T],
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    label: str = "batch",
) -> BatchResult[I, T]:
    """Apply ``func`` to every item, recording per-item failures.

    Results keep input order. When ``cancel_event`` is set, work that has not
    started is cancelled; every item that did run still lands in ``succeeded``
    or ``failed``.
    """
    items = list(items)
    result: BatchResult[I, T] = BatchResult()
    if not items:
        return result

    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=label) as executor:
        futures: List[Tuple[I, Future]] = []
        for item in items:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            futures.append((item, executor.submit(func, item)))

        cancelling = False
        for index, (item, future) in enumerate(futures):
            if not cancelling and cancel_event is not None and cancel_event.is_set():
                cancelling = result.cancelled = True
                for _, pending in futures[index:]:
                    pending.cancel()
            if future.cancelled():
                continue
            try:
                result.succeeded.append(future.result())
            except Exception as exc:
                logger.warning(f"{label}: item {item!r} failed: {exc}")
                result.failed.append((item, exc))

    logger.info(
        f"{label} completed: {result.success_count} succeeded, "
        f"{result.failure_count} failed{' (cancelled)' if result.cancelled else ''}"
    )
    return result
