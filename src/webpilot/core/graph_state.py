from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from webpilot.core.models import Decision, TaskOutcome

STOP_TO_OUTCOME: Dict[str, TaskOutcome] = {
    "completed": TaskOutcome.COMPLETED,
    "step_limit": TaskOutcome.STEP_LIMIT_REACHED,
    "security_denied": TaskOutcome.ABORTED_SECURITY,
    "state_error": TaskOutcome.ABORTED_ERROR,
    "decision_error": TaskOutcome.ABORTED_ERROR,
    "unknown_action": TaskOutcome.ABORTED_ERROR,
    "execute_error": TaskOutcome.ABORTED_ERROR,
    "cancelled": TaskOutcome.CANCELLED,
}


class StepState(TypedDict, total=False):
    task_id: str
    task_text: str
    session_id: str
    step: int
    max_steps: int
    page_state: Optional[str]
    decision: Optional[Decision]
    exec_error: Optional[str]
    recovered: bool
    actions_executed: int
    stop_reason: Optional[str]
    stop_details: Optional[str]
    records: List[Dict[str, Any]]


def initial_state(task_id: str, task_text: str, session_id: str, max_steps: int) -> StepState:
    return {
        "task_id": task_id,
        "task_text": task_text,
        "session_id": session_id,
        "step": 1,
        "max_steps": max_steps,
        "page_state": None,
        "decision": None,
        "exec_error": None,
        "recovered": False,
        "actions_executed": 0,
        "stop_reason": None,
        "stop_details": None,
        "records": [],
    }


def step_record(state: StepState, node: str, **extra: Any) -> Dict[str, Any]:
    decision = state.get("decision")
    record: Dict[str, Any] = {
        "session_id": state.get("session_id"),
        "task_id": state.get("task_id"),
        "step": state.get("step", 0),
        "node": node,
        "decision": decision.to_dict() if decision else None,
    }
    record.update(extra)
    return record


def write_trace(trace: Optional[Any], record: Dict[str, Any]) -> None:
    if trace is None:
        return
    try:
        trace.write(record)
    except OSError as exc:
        print(f"[trace] write failed: {exc}")
