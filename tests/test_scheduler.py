from __future__ import annotations

import asyncio

import pytest

from brandkit.errors import JobCancelled
from brandkit.scheduler import CancelToken, TaskScheduler


def test_never_exceeds_limit() -> None:
    active = 0
    peak = 0

    async def work(i: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return i

    factories = [lambda i=i: work(i) for i in range(7)]
    results = asyncio.run(TaskScheduler(2).run(factories))

    assert results == list(range(7))
    assert peak == 2


def test_results_keep_submission_order() -> None:
    async def work(i: int, delay: float) -> int:
        await asyncio.sleep(delay)
        return i

    delays = [0.03, 0.0, 0.02, 0.01]
    factories = [lambda i=i, d=d: work(i, d) for i, d in enumerate(delays)]

    assert asyncio.run(TaskScheduler(4).run(factories)) == [0, 1, 2, 3]


def test_first_failure_skips_tasks_not_yet_started() -> None:
    started = []

    async def work(i: int) -> int:
        started.append(i)
        await asyncio.sleep(0)
        if i == 1:
            raise RuntimeError("task 1 failed")
        return i

    factories = [lambda i=i: work(i) for i in range(5)]
    with pytest.raises(RuntimeError, match="task 1 failed"):
        asyncio.run(TaskScheduler(1).run(factories))

    assert started == [0, 1]


def test_in_flight_tasks_settle_before_failure_is_raised() -> None:
    finished = []

    async def slow() -> str:
        await asyncio.sleep(0.03)
        finished.append("slow")
        return "slow"

    async def failing() -> str:
        await asyncio.sleep(0.01)
        raise ValueError("bad")

    with pytest.raises(ValueError):
        asyncio.run(TaskScheduler(2).run([slow, failing]))

    assert finished == ["slow"]


def test_cancel_token_stops_remaining_tasks() -> None:
    token = CancelToken()
    started = []

    async def work(i: int) -> int:
        started.append(i)
        if i == 0:
            token.cancel()
        return i

    factories = [lambda i=i: work(i) for i in range(3)]
    with pytest.raises(JobCancelled, match="Job cancelled"):
        asyncio.run(TaskScheduler(1).run(factories, cancel=token))

    assert started == [0]


def test_empty_batch_returns_immediately() -> None:
    assert asyncio.run(TaskScheduler(3).run([])) == []


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TaskScheduler(0)
