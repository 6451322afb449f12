"""Bounded task queue feeding a fixed set of asyncio workers.

Upstream sources (one or more ``asyncio.Queue``) are merged into the pool's
own bounded queue; producers wait when it is full instead of dropping tasks.
With a single worker, tasks execute strictly in queue order.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from webpilot.core.errors import PoolClosedError
from webpilot.core.models import PoolTask
from webpilot.infra.tracing import NullLog

Handler = Callable[[int, PoolTask], Awaitable[Any]]

_STOP = object()


@dataclass(frozen=True)
class PoolMetrics:
    workers_current: int
    workers_min: int
    workers_max: int
    queued: int
    in_flight: int


class WorkerPool:
    def __init__(
        self,
        handler: Handler,
        *,
        min_workers: int = 1,
        max_workers: int = 1,
        current_workers: int = 1,
        capacity: int = 1024,
        text_log: Optional[Any] = None,
    ) -> None:
        if not 1 <= min_workers <= current_workers <= max_workers:
            raise ValueError(
                f"invalid worker bounds min={min_workers} current={current_workers} max={max_workers}"
            )
        if capacity < 1:
            raise ValueError("queue capacity must be positive")
        self.handler = handler
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.current_workers = current_workers
        self.capacity = capacity
        self.text_log = text_log or NullLog()
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._pumps: List[asyncio.Task] = []
        self._closed = False
        self._draining = False
        self._started = False
        self._in_flight = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _log(self, message: str) -> None:
        print(message)
        self.text_log.write(message)

    async def start(self) -> None:
        if self._closed:
            raise PoolClosedError()
        if self._started:
            return
        self._queue = asyncio.Queue(maxsize=self.capacity)
        self._workers = [
            asyncio.create_task(self._worker(idx), name=f"pool-worker-{idx}")
            for idx in range(self.current_workers)
        ]
        self._started = True
        m = self.metrics()
        self._log(
            f"[pool] started workers_current={m.workers_current} "
            f"workers_min={m.workers_min} workers_max={m.workers_max}"
        )

    async def submit(self, task: PoolTask) -> str:
        if self._closed:
            raise PoolClosedError()
        if self._queue is None:
            raise RuntimeError("worker pool is not started")
        await self._queue.put(task)
        # stop() may have run while this producer waited for room. A draining
        # stop still dispatches the item; otherwise the worker discards it.
        if self._closed and not self._draining:
            raise PoolClosedError()
        return task.id

    def attach(self, source: "asyncio.Queue[PoolTask]") -> None:
        """Merge an upstream queue into the pool until the pool closes."""
        if self._closed:
            raise PoolClosedError()
        self._pumps.append(asyncio.create_task(self._pump(source), name=f"pool-pump-{len(self._pumps)}"))

    async def _pump(self, source: "asyncio.Queue[PoolTask]") -> None:
        while True:
            task = await source.get()
            try:
                await self.submit(task)
            except PoolClosedError as exc:
                self._log(f"[pool] pump stopped: {exc}; task {task.id} not dispatched")
                return

    async def _worker(self, idx: int) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                if self._closed and not self._draining:
                    self._log(f"[pool] discarded queued task {item.id}")
                    continue
                self._in_flight += 1
                try:
                    await self.handler(idx, item)
                except Exception as exc:  # noqa: BLE001
                    self._log(f"[pool] worker={idx} task={item.id} failed: {exc!r}")
                finally:
                    self._in_flight -= 1
            finally:
                self._queue.task_done()

    async def stop(self, *, drain: bool = False) -> None:
        """Stop accepting tasks and wait for running ones to finish.

        Queued tasks are dispatched first when ``drain`` is set, discarded otherwise.
        """
        if self._closed:
            return
        self._closed = True
        self._draining = drain
        for pump in self._pumps:
            pump.cancel()
        await asyncio.gather(*self._pumps, return_exceptions=True)
        self._pumps = []
        if self._queue is None:
            return

        if drain:
            await self._queue.join()
        else:
            dropped = 0
            while True:
                try:
                    item = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                self._queue.task_done()
                dropped += 1
                self._log(f"[pool] discarded queued task {item.id}")
            if dropped:
                self._log(f"[pool] discarded {dropped} queued task(s) on stop")

        for _ in self._workers:
            await self._queue.put(_STOP)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._log("[pool] stopped")

    def metrics(self) -> PoolMetrics:
        return PoolMetrics(
            workers_current=self.current_workers,
            workers_min=self.min_workers,
            workers_max=self.max_workers,
            queued=self._queue.qsize() if self._queue is not None else 0,
            in_flight=self._in_flight,
        )
