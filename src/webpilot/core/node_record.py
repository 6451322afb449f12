from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.config.config import Settings
from webpilot.core.auth_state import AuthStateCache
from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.core.history import HistoryStore
from webpilot.infra.tracing import emit


def make_record_node(
    *,
    surface: Any,
    history: HistoryStore,
    auth: AuthStateCache,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def record_node(state: StepState) -> StepState:
        decision = state.get("decision")
        if decision is None:
            raise RuntimeError("Record node missing decision")
        history.append(decision.summary())

        if decision.action == "navigate" and not state.get("exec_error"):
            try:
                is_logged_in, username = await surface.detect_auth()
            except Exception as exc:
                emit(text_log, f"[step] Auth check failed: {exc}")
            else:
                auth.update(surface.current_url(), is_logged_in, username)

        records = list(state.get("records") or [])
        record = step_record(
            state,
            "record",
            recovered=state.get("recovered", False),
            execute_error=state.get("exec_error"),
            history_size=len(history),
        )
        records.append(record)
        write_trace(trace, record)

        if decision.completed:
            emit(text_log, "[step] Task completed successfully!")
            return {**state, "records": records, "stop_reason": "completed", "stop_details": decision.reasoning}
        return {**state, "records": records}

    return record_node


def make_pause_node(
    *,
    settings: Settings,
    cancel: asyncio.Event,
    text_log: Any,
) -> Any:
    async def pause_node(state: StepState) -> StepState:
        # Politeness interval; wakes early when cancellation is requested.
        if settings.step_delay_sec > 0 and not cancel.is_set():
            try:
                await asyncio.wait_for(cancel.wait(), timeout=settings.step_delay_sec)
            except asyncio.TimeoutError:
                pass

        step = state.get("step", 1)
        if step >= state.get("max_steps", settings.max_steps):
            emit(text_log, "[step] Maximum steps reached. Task may not be complete.")
            return {**state, "stop_reason": "step_limit", "stop_details": f"max_steps={step}"}
        return {
            **state,
            "step": step + 1,
            "page_state": None,
            "decision": None,
            "exec_error": None,
            "recovered": False,
        }

    return pause_node
