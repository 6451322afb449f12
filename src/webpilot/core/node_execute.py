from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.config.config import Settings
from webpilot.core.errors import UnknownActionError
from webpilot.core.execute import execute_action
from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.core.node_observe import stop_cancelled
from webpilot.infra.tracing import emit


def make_execute_node(
    *,
    settings: Settings,
    surface: Any,
    cancel: asyncio.Event,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def execute_node(state: StepState) -> StepState:
        if cancel.is_set():
            return stop_cancelled(state, "execute", text_log, trace)
        decision = state.get("decision")
        if decision is None:
            raise RuntimeError("Execute node missing decision")
        try:
            await execute_action(surface, decision, settings, text_log)
        except UnknownActionError as exc:
            emit(text_log, f"[step] Action failed: {exc}")
            write_trace(trace, step_record(state, "execute", stop_reason="unknown_action", error=str(exc)))
            return {**state, "stop_reason": "unknown_action", "stop_details": str(exc)}
        except Exception as exc:
            emit(text_log, f"[step] Action failed: {exc}")
            write_trace(trace, step_record(state, "execute", execute_success=False, error=str(exc)))
            return {**state, "exec_error": str(exc) or exc.__class__.__name__}
        write_trace(trace, step_record(state, "execute", execute_success=True))
        return {
            **state,
            "exec_error": None,
            "actions_executed": state.get("actions_executed", 0) + 1,
        }

    return execute_node
