from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from langgraph.errors import GraphRecursionError

from webpilot.config.config import Settings
from webpilot.core.auth_state import AuthStateCache
from webpilot.core.errors import PoolClosedError
from webpilot.core.graph_orchestrator import compile_graph, recursion_limit
from webpilot.core.graph_state import initial_state
from webpilot.core.history import HistoryStore
from webpilot.core.models import PoolTask, Task, TaskResult
from webpilot.core.node_decide import make_decide_node
from webpilot.core.node_execute import make_execute_node
from webpilot.core.node_observe import make_observe_node
from webpilot.core.node_record import make_pause_node, make_record_node
from webpilot.core.node_recover import make_recover_node
from webpilot.core.node_safety import make_safety_node
from webpilot.core.planner import Decider
from webpilot.core.security import SecurityGate
from webpilot.infra.termination_normalizer import normalize_outcome
from webpilot.infra.tracing import NullLog, emit, generate_step_id
from webpilot.infra.worker_pool import PoolMetrics, WorkerPool
from webpilot.surface.page_surface import Surface

RESULTS_LIMIT = 1024


class TaskWorker:
    """Runs tasks one at a time against a single surface."""

    def __init__(
        self,
        settings: Settings,
        surface: Surface,
        decider: Decider,
        gate: SecurityGate,
        cancel: asyncio.Event,
        *,
        text_log: Optional[Any] = None,
        trace: Optional[Any] = None,
    ) -> None:
        self.settings = settings
        self.surface = surface
        self.cancel = cancel
        self.text_log = text_log or NullLog()
        self.trace = trace
        self.history = HistoryStore()
        self.auth = AuthStateCache()
        self.session_id = generate_step_id("session")
        self.is_running = False
        nodes = {
            "observe": make_observe_node(surface=surface, cancel=cancel, text_log=self.text_log, trace=trace),
            "decide": make_decide_node(
                settings=settings,
                decider=decider,
                surface=surface,
                history=self.history,
                auth=self.auth,
                cancel=cancel,
                text_log=self.text_log,
                trace=trace,
            ),
            "safety": make_safety_node(gate=gate, cancel=cancel, text_log=self.text_log, trace=trace),
            "execute": make_execute_node(
                settings=settings, surface=surface, cancel=cancel, text_log=self.text_log, trace=trace
            ),
            "recover": make_recover_node(settings=settings, surface=surface, text_log=self.text_log, trace=trace),
            "record": make_record_node(
                surface=surface, history=self.history, auth=self.auth, text_log=self.text_log, trace=trace
            ),
            "pause": make_pause_node(settings=settings, cancel=cancel, text_log=self.text_log),
        }
        self.graph = compile_graph(nodes)
        self.graph_config = {"recursion_limit": recursion_limit(settings.max_steps)}

    async def run_task(self, task: Task) -> TaskResult:
        self.is_running = True
        self.history.clear()
        emit(self.text_log, f"[task] Starting task {task.id}: {task.text}")
        state = initial_state(task.id, task.text, self.session_id, self.settings.max_steps)
        try:
            try:
                result = await self.graph.ainvoke(state, config=self.graph_config)
            except GraphRecursionError as exc:
                emit(self.text_log, f"[{self.session_id}] recursion limit reached; reason={exc}")
                result = {**state, "stop_reason": "step_limit", "stop_details": f"recursion_limit; {exc}"}
            return normalize_outcome(
                dict(result),
                history=self.history.entries(),
                text_log=self.text_log,
                trace=self.trace,
            )
        finally:
            self.is_running = False


class Orchestrator:
    """Feeds queued tasks to one TaskWorker per browser page."""

    def __init__(
        self,
        settings: Settings,
        runtime: Any,
        decider: Decider,
        gate: SecurityGate,
        *,
        sources: Iterable["asyncio.Queue[PoolTask]"] = (),
        text_log: Optional[Any] = None,
        trace: Optional[Any] = None,
        results_limit: int = RESULTS_LIMIT,
    ) -> None:
        self.settings = settings
        self.runtime = runtime
        self.decider = decider
        self.gate = gate
        self.sources = list(sources)
        self.text_log = text_log or NullLog()
        self.trace = trace
        self.cancel = asyncio.Event()
        self.workers: List[TaskWorker] = []
        # Most recent outcomes, oldest evicted first.
        self.results: "OrderedDict[str, TaskResult]" = OrderedDict()
        self.results_limit = max(1, results_limit)
        self._waiters: Dict[str, "asyncio.Future[TaskResult]"] = {}
        self._stopped = False
        self.pool = WorkerPool(
            self._handle,
            min_workers=settings.workers_min,
            max_workers=settings.workers_max,
            current_workers=settings.workers_current,
            capacity=settings.queue_capacity,
            text_log=self.text_log,
        )

    async def _handle(self, idx: int, task: PoolTask) -> None:
        try:
            result = await self.workers[idx].run_task(task)
        except Exception as exc:
            self._settle(task.id, error=exc)
            raise
        self.results[task.id] = result
        while len(self.results) > self.results_limit:
            self.results.popitem(last=False)
        self._settle(task.id, result=result)
        emit(self.text_log, f"[task] {task.id} finished: {result.outcome.value} after {result.steps} step(s)")

    def _settle(
        self, task_id: str, *, result: Optional[TaskResult] = None, error: Optional[BaseException] = None
    ) -> None:
        waiter = self._waiters.pop(task_id, None)
        if waiter is None or waiter.done():
            return
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(result)

    async def wait_result(self, task_id: str) -> TaskResult:
        """Wait until ``task_id`` has run; raises PoolClosedError if it never will."""
        if task_id in self.results:
            return self.results[task_id]
        if self._stopped:
            raise PoolClosedError(f"task {task_id} was not run")
        waiter = self._waiters.get(task_id)
        if waiter is None:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[task_id] = waiter
        return await waiter

    async def start(self) -> None:
        for _ in range(self.settings.workers_current):
            surface = await self.runtime.new_surface()
            self.workers.append(
                TaskWorker(
                    self.settings,
                    surface,
                    self.decider,
                    self.gate,
                    self.cancel,
                    text_log=self.text_log,
                    trace=self.trace,
                )
            )
        await self.pool.start()
        for source in self.sources:
            self.pool.attach(source)

    async def submit(self, text: str) -> str:
        text = text.strip()
        if not text:
            raise ValueError("task text must not be empty")
        return await self.pool.submit(Task.create(text))

    async def stop(self, *, cancel_running: bool = False, drain: bool = False) -> None:
        if cancel_running:
            self.cancel.set()
        await self.pool.stop(drain=drain)
        self._stopped = True
        for task_id in list(self._waiters):
            self._settle(task_id, error=PoolClosedError(f"task {task_id} was not run"))
        for worker in self.workers:
            await worker.surface.close()

    def metrics(self) -> PoolMetrics:
        return self.pool.metrics()
