"""Bounded-concurrency execution of independent async work items."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .errors import JobCancelled

log = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


class CancelToken:
    """Cooperative cancellation flag checked before each task starts."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = "Job cancelled"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        if reason:
            self.reason = reason
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise JobCancelled(self.reason)


class _Skipped:
    pass


_SKIPPED = _Skipped()


class TaskScheduler:
    """
    Run task factories with at most `limit` in flight.

    Fail-fast: once a task fails, tasks that have not started yet are
    skipped, the ones already running are allowed to settle, and the first
    failure is re-raised. Results come back in submission order.
    """

    def __init__(self, limit: int, name: str = "tasks") -> None:
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self.name = name

    async def run(
        self,
        factories: Sequence[TaskFactory],
        cancel: Optional[CancelToken] = None,
    ) -> List[Any]:
        if not factories:
            return []

        semaphore = asyncio.Semaphore(self.limit)
        failures: List[BaseException] = []

        async def _guarded(factory: TaskFactory) -> Any:
            async with semaphore:
                if failures or (cancel is not None and cancel.cancelled):
                    return _SKIPPED
                try:
                    return await factory()
                except Exception as exc:
                    failures.append(exc)
                    raise

        log.debug("Scheduling %d %s (limit=%d)", len(factories), self.name, self.limit)
        results = await asyncio.gather(
            *(_guarded(factory) for factory in factories),
            return_exceptions=True,
        )

        if failures:
            skipped = sum(1 for r in results if r is _SKIPPED)
            log.warning(
                "%s failed; %d not started: %s", self.name, skipped, failures[0]
            )
            raise failures[0]
        if cancel is not None:
            cancel.raise_if_cancelled()
        return list(results)
