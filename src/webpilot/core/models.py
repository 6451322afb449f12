from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ACTIONS = ("click", "type", "navigate", "scroll", "wait", "wait_user", "complete")


@dataclass(frozen=True)
class Task:
    id: str
    text: str

    @classmethod
    def create(cls, text: str) -> "Task":
        return cls(id=str(uuid.uuid4()), text=text)


# Queue-facing unit; same shape as Task.
PoolTask = Task


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True)
class Decision:
    reasoning: str
    action: str
    target: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    need_approval: bool = False
    completed: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Decision":
        action = str(payload.get("action") or "").strip().lower()
        completed = bool(payload.get("completed", False)) or action == "complete"
        return cls(
            reasoning=str(payload.get("reasoning") or ""),
            action=action,
            target=_opt_str(payload.get("target")),
            text=_opt_str(payload.get("text")),
            url=_opt_str(payload.get("url")),
            need_approval=bool(payload.get("need_approval", False)),
            completed=completed,
        )

    def summary(self) -> str:
        return f"{self.action}: {self.target or ''} -> {self.reasoning}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reasoning": self.reasoning,
            "action": self.action,
            "target": self.target,
            "text": self.text,
            "url": self.url,
            "need_approval": self.need_approval,
            "completed": self.completed,
        }


@dataclass
class AuthState:
    domain: str
    is_logged_in: bool = False
    username: str = ""
    auth_required: bool = False


class TaskOutcome(str, Enum):
    COMPLETED = "completed"
    ABORTED_ERROR = "aborted_error"
    ABORTED_SECURITY = "aborted_security"
    STEP_LIMIT_REACHED = "step_limit_reached"
    CANCELLED = "cancelled"


@dataclass
class TaskResult:
    task_id: str
    text: str
    outcome: TaskOutcome
    steps: int
    stop_reason: str
    stop_details: Optional[str] = None
    history: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "text": self.text,
            "outcome": self.outcome.value,
            "steps": self.steps,
            "stop_reason": self.stop_reason,
            "stop_details": self.stop_details,
            "history": list(self.history),
        }
