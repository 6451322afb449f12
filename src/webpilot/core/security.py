from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from webpilot.io.console import ConsoleInput

SENSITIVE_KEYWORDS: Tuple[str, ...] = (
    "buy", "purchase", "pay", "order", "checkout",
    "delete", "remove", "cancel", "unsubscribe",
    "confirm", "submit", "send", "post", "publish",
    "transfer", "withdraw", "install", "download",
)
AFFIRMATIVE = "y"

# Takes the prompt text, returns the operator's reply or None when there is none.
Confirmer = Callable[[str], Optional[str]]


@dataclass
class SecurityDecision:
    requires_confirmation: bool
    keyword: Optional[str]


def _alert_text(action: str, target: str, reasoning: str, keyword: str) -> str:
    return (
        "\n[security] SECURITY ALERT\n"
        f"[security] Action: {action} {target}\n"
        f"[security] Reasoning: {reasoning}\n"
        f"[security] Matched sensitive keyword: {keyword!r}\n"
        "[security] Do you want to proceed? (y/n): "
    )


class SecurityGate:
    """Intercepts sensitive actions and asks the operator before they run."""

    def __init__(
        self,
        confirm: Optional[Confirmer] = None,
        keywords: Tuple[str, ...] = SENSITIVE_KEYWORDS,
    ) -> None:
        self._confirm = confirm or ConsoleInput().ask
        self._keywords = tuple(k.lower() for k in keywords)

    def analyze(self, action: str, target: str, reasoning: str) -> SecurityDecision:
        combined = f"{action} {target} {reasoning}".lower()
        for keyword in self._keywords:
            if keyword in combined:
                return SecurityDecision(True, keyword)
        return SecurityDecision(False, None)

    def check(self, action: str, target: Optional[str], reasoning: str) -> bool:
        target = target or ""
        decision = self.analyze(action, target, reasoning)
        if not decision.requires_confirmation:
            return True
        reply = self._confirm(_alert_text(action, target, reasoning, decision.keyword or ""))
        if reply is None:
            return False
        return reply.strip().lower() == AFFIRMATIVE
