from __future__ import annotations

from typing import Dict, Tuple

from webpilot.core.models import AuthState

# Possessive / personal-data terms that suggest the task needs a signed-in session.
AUTH_KEYWORDS: Tuple[str, ...] = (
    "мой", "мои", "моё", "my", "личн", "профиль", "profile",
    "заказы", "orders", "покупки", "purchases", "история", "history",
    "сообщения", "messages", "настройки", "settings", "аккаунт", "account",
)


def domain_of(url: str) -> str:
    """Host segment of ``url``; urls without a scheme are returned as-is."""
    if "://" in url:
        parts = url.split("/")
        if len(parts) >= 3:
            return parts[2]
    return url


class AuthStateCache:
    def __init__(self, keywords: Tuple[str, ...] = AUTH_KEYWORDS) -> None:
        self._keywords = tuple(k.lower() for k in keywords)
        self._states: Dict[str, AuthState] = {}

    def update(self, url: str, is_logged_in: bool, username: str = "") -> AuthState:
        domain = domain_of(url)
        state = AuthState(
            domain=domain,
            is_logged_in=is_logged_in,
            username=username,
            auth_required=False,
        )
        self._states[domain] = state
        return state

    def get(self, domain: str) -> AuthState:
        state = self._states.get(domain)
        if state is not None:
            return state
        return AuthState(domain=domain, is_logged_in=False, auth_required=False)

    def requires_auth(self, task_text: str) -> bool:
        lowered = task_text.lower()
        return any(keyword in lowered for keyword in self._keywords)

    def auth_hint(self, task_text: str, url: str) -> str | None:
        """Prompt hint when the task looks personal and the domain is not signed in."""
        if not self.requires_auth(task_text):
            return None
        state = self.get(domain_of(url))
        if state.is_logged_in:
            who = f" as {state.username}" if state.username else ""
            return f"The task concerns personal data; the session on {state.domain} is signed in{who}."
        return (
            f"The task concerns personal data and {state.domain or 'this site'} is not signed in yet. "
            "If a login is required, use wait_user so the operator can sign in."
        )

    def domains(self) -> list[str]:
        return sorted(self._states)

    def __len__(self) -> int:
        return len(self._states)
