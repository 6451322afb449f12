from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.core.node_observe import stop_cancelled
from webpilot.core.security import SecurityGate
from webpilot.infra.tracing import emit
from webpilot.io.console import in_daemon_thread


def make_safety_node(
    *,
    gate: SecurityGate,
    cancel: asyncio.Event,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def safety_node(state: StepState) -> StepState:
        if cancel.is_set():
            return stop_cancelled(state, "safety", text_log, trace)
        decision = state.get("decision")
        if decision is None:
            raise RuntimeError("Safety node missing decision")

        # The confirmation prompt blocks on stdin; cancellation must not wait for it.
        check = asyncio.ensure_future(
            in_daemon_thread(gate.check, decision.action, decision.target, decision.reasoning)
        )
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({check, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            pending = not check.done()
            if pending:
                check.cancel()
        if pending:
            return stop_cancelled(state, "safety", text_log, trace)
        allowed = check.result()

        if not allowed:
            emit(text_log, "[security] Action cancelled by user")
            write_trace(trace, step_record(state, "safety", stop_reason="security_denied"))
            return {
                **state,
                "stop_reason": "security_denied",
                "stop_details": f"{decision.action} {decision.target or ''}".strip(),
            }
        return state

    return safety_node
