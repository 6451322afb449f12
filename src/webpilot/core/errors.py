"""Error taxonomy for task execution.

Fatal categories end the current task only; the pool and sibling workers keep
running. Element/visibility/navigation errors carry the message fragments the
recovery classifier keys on.
"""
from __future__ import annotations


class AgentError(Exception):
    pass


class DecisionError(AgentError):
    """Decision service unreachable, timed out, malformed or empty."""


class StateExtractionError(AgentError):
    """The current page state could not be observed."""


class ElementResolutionError(AgentError):
    def __init__(self, description: str, detail: str = "") -> None:
        self.description = description
        message = f"element not found: {description!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class VisibilityError(AgentError):
    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"element not visible: {description!r}")


class NavigationError(AgentError):
    def __init__(self, url: str, detail: str = "") -> None:
        self.url = url
        message = f"navigation to {url} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownActionError(AgentError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"unknown action: {action}")


class PoolClosedError(AgentError):
    def __init__(self, message: str = "worker pool is closed") -> None:
        super().__init__(message)
