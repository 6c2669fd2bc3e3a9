"""Bounded-concurrency work scheduler with fail-fast intake."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Generic, NamedTuple, TypeVar

from playmirror.config import default_concurrency
from playmirror.models.cancel import CancelToken
from playmirror.models.results import ScheduleReport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Completion(NamedTuple, Generic[T]):
    """One finished work item.

    Attributes:
        item: The payload handed to the operation.
        result: Return value of the operation (None if it raised).
        error: Exception raised by the operation, if any.
        completed: Number of items finished so far, including this one.
        total: Number of submitted items.
    """

    item: T
    result: Any
    error: BaseException | None
    completed: int
    total: int


class BoundedScheduler:
    """Runs an operation over many items with a fixed concurrency ceiling.

    Scheduling Overview:
    ====================
    - Items are started in submission (FIFO) order, never more than
      ``concurrency`` at a time; they may finish in any order.
    - The first error is recorded. From then on no new item is started, but
      items already running finish normally before the run returns.
    - A CancelToken stops intake the same way. Cancellation alone is not
      an error.
    - ``completed`` is a monotonically increasing counter for progress
      reporting; it is not part of the result.

    The operation is expected to leave its item either fully done or
    untouched, since running items are never interrupted.

    Example:
        >>> scheduler = BoundedScheduler(concurrency=4)
        >>> report = scheduler.run(items, sync_item, cancel_token=token)
        >>> report.raise_for_error()
    """

    def __init__(
        self, concurrency: int | None = None, *, name: str = "playmirror"
    ) -> None:
        """Initialize the scheduler.

        Args:
            concurrency: Maximum number of operations in flight. Defaults to
                the number of CPUs.
            name: Thread name prefix for worker threads.

        Raises:
            ValueError: If concurrency is lower than 1.
        """
        if concurrency is None:
            concurrency = default_concurrency()
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._concurrency = concurrency
        self._name = name
        self._lock = threading.Lock()
        self._completed = 0
        self._last_report: ScheduleReport | None = None

    @property
    def concurrency(self) -> int:
        """Maximum number of operations in flight."""
        return self._concurrency

    @property
    def completed(self) -> int:
        """Number of items finished in the current (or last) run."""
        with self._lock:
            return self._completed

    @property
    def last_report(self) -> ScheduleReport | None:
        """Report of the most recent run, or None before the first run."""
        return self._last_report

    def run(
        self,
        items: Sequence[T],
        op: Callable[[T], Any],
        *,
        cancel_token: CancelToken | None = None,
        on_complete: Callable[[Completion[T]], None] | None = None,
    ) -> ScheduleReport:
        """Run ``op`` for every item and wait for all started items.

        Args:
            items: Work items, started in order.
            op: Operation invoked once per started item.
            cancel_token: Optional token; checked before each item starts.
            on_complete: Optional callback invoked after each finished item.

        Returns:
            Report with the first error (if any) and counters.
        """
        for completion in self.iter_run(items, op, cancel_token=cancel_token):
            if on_complete is not None:
                on_complete(completion)

        assert self._last_report is not None
        return self._last_report

    def iter_run(
        self,
        items: Sequence[T],
        op: Callable[[T], Any],
        *,
        cancel_token: CancelToken | None = None,
    ) -> Iterator[Completion[T]]:
        """Run ``op`` for every item, yielding each completion as it happens.

        Same semantics as run(). The report is available from last_report
        once the iterator is exhausted.

        Yields:
            A Completion for every started item, in completion order.
        """
        queue: deque[T] = deque(items)
        total = len(queue)
        results: list[Any] = []
        first_error: BaseException | None = None
        started = 0
        cancelled = False

        with self._lock:
            self._completed = 0
        self._last_report = None

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix=self._name
        ) as pool:
            pending: dict[Future[Any], T] = {}
            try:
                while True:
                    # Intake: fill free slots unless stopped
                    while (
                        queue
                        and first_error is None
                        and len(pending) < self._concurrency
                    ):
                        if cancel_token is not None and cancel_token.is_cancelled:
                            if not cancelled:
                                logger.warning(
                                    "Cancelled, waiting for %d running item(s)",
                                    len(pending),
                                )
                            cancelled = True
                            break
                        item = queue.popleft()
                        pending[pool.submit(op, item)] = item
                        started += 1

                    if not pending:
                        break

                    done, _ = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        item = pending.pop(future)
                        error = future.exception()
                        result = None
                        if error is None:
                            result = future.result()
                            results.append(result)
                        elif first_error is None:
                            first_error = error
                            logger.error(
                                "Stopping after error, waiting for %d running "
                                "item(s): %s",
                                len(pending),
                                error,
                            )

                        with self._lock:
                            self._completed += 1
                            completed = self._completed

                        yield Completion(item, result, error, completed, total)
            finally:
                self._last_report = ScheduleReport(
                    results=results,
                    total=total,
                    started=started,
                    completed=self.completed,
                    cancelled=cancelled and first_error is None,
                    error=first_error,
                )
