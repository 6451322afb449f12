from __future__ import annotations

from typing import Any

from webpilot.config.config import Settings
from webpilot.core.errors import UnknownActionError
from webpilot.core.models import Decision
from webpilot.infra.tracing import emit


async def execute_action(surface: Any, decision: Decision, settings: Settings, text_log: Any) -> None:
    """Dispatch one decision to the page surface; errors propagate to recovery."""
    action = decision.action
    if action == "click":
        await surface.click_element(decision.target or "")
        return
    if action == "type":
        await surface.type_text(decision.target or "", decision.text or "")
        return
    if action == "navigate":
        await surface.navigate(decision.url or "")
        return
    if action == "scroll":
        await surface.scroll_page()
        return
    if action == "wait":
        await surface.wait(settings.wait_action_sec)
        return
    if action == "wait_user":
        emit(text_log, "[step] Waiting for the operator to act on the page; resuming on the next step.")
        return
    if action == "complete":
        return
    raise UnknownActionError(action)
