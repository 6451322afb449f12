from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.core.errors import StateExtractionError
from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.infra.tracing import emit


def stop_cancelled(state: StepState, node: str, text_log: Any, trace: Optional[Any]) -> StepState:
    emit(text_log, f"[{state['session_id']}] cancellation observed at {node} step={state.get('step', 0)}")
    write_trace(trace, step_record(state, node, stop_reason="cancelled"))
    return {**state, "stop_reason": "cancelled", "stop_details": f"cancelled before {node}"}


def make_observe_node(
    *,
    surface: Any,
    cancel: asyncio.Event,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def observe_node(state: StepState) -> StepState:
        if cancel.is_set():
            return stop_cancelled(state, "observe", text_log, trace)
        emit(text_log, f"\n[step] --- Step {state['step']} ---")
        try:
            page_state = await surface.extract_state()
        except Exception as exc:
            error = exc if isinstance(exc, StateExtractionError) else StateExtractionError(str(exc))
            emit(text_log, f"[step] Failed to extract page state: {error}")
            write_trace(trace, step_record(state, "observe", stop_reason="state_error", error=str(error)))
            return {**state, "stop_reason": "state_error", "stop_details": str(error)}
        return {**state, "page_state": page_state}

    return observe_node
