from __future__ import annotations

from typing import Any, Optional, Protocol

from webpilot.core.graph_state import STOP_TO_OUTCOME
from webpilot.core.models import TaskOutcome, TaskResult


class _TextLog(Protocol):
    def write(self, message: str) -> None: ...


class _Trace(Protocol):
    def write(self, record: Any) -> None: ...


def normalize_outcome(
    result: dict[str, Any],
    *,
    history: list[str],
    text_log: _TextLog,
    trace: Optional[_Trace] = None,
) -> TaskResult:
    """Fold the final graph state into a TaskResult.

    A state that ended without a stop reason is treated as an error abort.
    """
    stop_reason = result.get("stop_reason")
    if not stop_reason:
        stop_reason = "execute_error"
        result["stop_reason"] = stop_reason
        result["stop_details"] = result.get("stop_details") or "no_stop_condition_reached"

    outcome = STOP_TO_OUTCOME.get(stop_reason, TaskOutcome.ABORTED_ERROR)
    task_result = TaskResult(
        task_id=result.get("task_id", ""),
        text=result.get("task_text", ""),
        outcome=outcome,
        steps=result.get("step", 0),
        stop_reason=stop_reason,
        stop_details=result.get("stop_details"),
        history=list(history),
    )

    session_id = result.get("session_id")
    try:
        text_log.write(
            f"[{session_id}] finished task={task_result.task_id} outcome={outcome.value} "
            f"reason={stop_reason} steps={task_result.steps} "
            f"actions={result.get('actions_executed', 0)} details={task_result.stop_details}"
        )
    except OSError as exc:
        print(f"[log] write failed: {exc}")

    if trace:
        try:
            trace.write(
                {
                    "summary": True,
                    "session_id": session_id,
                    **task_result.to_dict(),
                    "actions_executed": result.get("actions_executed", 0),
                }
            )
        except OSError as exc:
            print(f"[trace] write failed: {exc}")

    return task_result
