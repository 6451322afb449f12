from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.config.config import Settings
from webpilot.core.auth_state import AuthStateCache
from webpilot.core.errors import DecisionError
from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.core.history import HistoryStore
from webpilot.core.node_observe import stop_cancelled
from webpilot.core.planner import Decider
from webpilot.infra.tracing import emit


def _describe(decision: Any) -> str:
    line = f"[step] Action: {decision.action}"
    if decision.target:
        line += f" -> {decision.target}"
    if decision.text:
        line += f" (text: {decision.text})"
    return line


def make_decide_node(
    *,
    settings: Settings,
    decider: Decider,
    surface: Any,
    history: HistoryStore,
    auth: AuthStateCache,
    cancel: asyncio.Event,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def decide_node(state: StepState) -> StepState:
        if cancel.is_set():
            return stop_cancelled(state, "decide", text_log, trace)
        auth_hint = auth.auth_hint(state["task_text"], surface.current_url())
        try:
            decision = await asyncio.wait_for(
                decider.decide(
                    state["task_text"],
                    state.get("page_state") or "",
                    history.render(),
                    auth_hint=auth_hint,
                ),
                timeout=settings.decision_timeout_sec,
            )
        except asyncio.TimeoutError:
            details = f"decision timeout after {settings.decision_timeout_sec}s"
            emit(text_log, f"[step] Failed to decide action: {details}")
            write_trace(trace, step_record(state, "decide", stop_reason="decision_error", error=details))
            return {**state, "stop_reason": "decision_error", "stop_details": details}
        except Exception as exc:
            error = exc if isinstance(exc, DecisionError) else DecisionError(str(exc))
            emit(text_log, f"[step] Failed to decide action: {error}")
            write_trace(trace, step_record(state, "decide", stop_reason="decision_error", error=str(error)))
            return {**state, "stop_reason": "decision_error", "stop_details": str(error)}

        emit(text_log, f"[step] Reasoning: {decision.reasoning}")
        emit(text_log, _describe(decision))
        return {**state, "decision": decision}

    return decide_node
