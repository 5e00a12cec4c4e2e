"""Bounded-concurrency runner for zero-argument async tasks."""

from __future__ import annotations

import asyncio
from typing import Callable, Generic, Sequence, TypeVar

import structlog

from ..errors import PoolError
from .models import PoolStats, Task

T = TypeVar("T")

SettledCallback = Callable[[int, object], None]


class ConcurrencyPool(Generic[T]):
    """Run tasks with at most ``limit`` outstanding, collecting results as they settle.

    A fixed number of workers pull from a shared queue. Results are appended in
    settlement order, not submission order. After the first failure no further
    task is started; tasks already running are allowed to finish and the first
    failure is then raised as :class:`PoolError`.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("catalog_harvester.pool")
        self.stats = PoolStats()

    async def run_all(
        self,
        tasks: Sequence[Task[T]],
        limit: int,
        on_settled: SettledCallback | None = None,
    ) -> list[T]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.stats = PoolStats(submitted=len(tasks))
        if not tasks:
            return []

        queue: asyncio.Queue[tuple[int, Task[T]]] = asyncio.Queue()
        for index, task in enumerate(tasks):
            queue.put_nowait((index, task))

        results: list[T] = []
        failure: list[tuple[int, BaseException]] = []
        in_flight = 0

        async def worker() -> None:
            nonlocal in_flight
            while not failure:
                try:
                    index, task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                in_flight += 1
                self.stats.peak_in_flight = max(self.stats.peak_in_flight, in_flight)
                try:
                    result = await task()
                except Exception as exc:  # noqa: BLE001
                    self.stats.failed += 1
                    self.logger.warning(
                        "pool_task_failed", index=index, error=str(exc), first=not failure
                    )
                    if not failure:
                        failure.append((index, exc))
                    settled: object = exc
                else:
                    self.stats.completed += 1
                    results.append(result)
                    settled = result
                finally:
                    in_flight -= 1
                if on_settled is not None:
                    try:
                        on_settled(index, settled)
                    except Exception as exc:  # noqa: BLE001
                        # an observer must not stop the worker mid-drain
                        self.logger.warning("settled_callback_failed", index=index, error=str(exc))

        workers = min(limit, len(tasks))
        await asyncio.gather(*(worker() for _ in range(workers)))

        if failure:
            index, exc = failure[0]
            raise PoolError(exc, index=index) from exc
        return results


__all__ = ["ConcurrencyPool"]
