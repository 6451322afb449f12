from __future__ import annotations

from typing import Any, Optional

from webpilot.config.config import Settings
from webpilot.core.graph_state import StepState, step_record, write_trace
from webpilot.core.recovery import Remedy, classify_error
from webpilot.infra.tracing import emit


def make_recover_node(
    *,
    settings: Settings,
    surface: Any,
    text_log: Any,
    trace: Optional[Any] = None,
) -> Any:
    async def recover_node(state: StepState) -> StepState:
        message = state.get("exec_error") or ""
        emit(text_log, f"[step] Handling error: {message}")
        verdict = classify_error(message)
        write_trace(
            trace,
            step_record(state, "recover", error=message, remedy=verdict.remedy.value),
        )
        if not verdict.recoverable:
            emit(text_log, "[step] Unrecoverable error")
            return {**state, "stop_reason": "execute_error", "stop_details": message}

        if verdict.remedy is Remedy.SCROLL:
            emit(text_log, f"[step] {verdict.rule.signal if verdict.rule else 'error'}; scrolling page")
            try:
                await surface.scroll_page()
            except Exception as exc:
                # The step continues either way.
                emit(text_log, f"[step] Recovery scroll failed: {exc}")
        elif verdict.remedy is Remedy.WAIT:
            emit(text_log, f"[step] Navigation issue; waiting {settings.navigation_wait_sec}s")
            await surface.wait(settings.navigation_wait_sec)
        return {**state, "recovered": True}

    return recover_node
