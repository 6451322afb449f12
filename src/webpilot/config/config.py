from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from webpilot.infra.paths import Paths

_TRUTHY = {"1", "true", "yes", "on"}


def _clamp_int(raw: Optional[str], *, default: int, min_value: int = 1) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return max(min_value, value)


def _clamp_float(raw: Optional[str], *, default: float, min_value: float = 0.0) -> float:
    try:
        value = float(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    if value < min_value:
        return default
    return value


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    start_url: str = "about:blank"
    headless: bool = False
    max_steps: int = 50
    step_delay_sec: float = 2.0
    wait_action_sec: float = 3.0
    navigation_wait_sec: float = 5.0
    scroll_step: int = 500
    navigation_timeout_ms: int = 30000
    decision_timeout_sec: float = 30.0
    decision_max_retries: int = 2
    workers_min: int = 1
    workers_max: int = 1
    workers_current: int = 1
    queue_capacity: int = 1024
    paths: Paths = field(default_factory=lambda: Paths.under(Path.cwd()))

    @classmethod
    def load(cls) -> "Settings":
        # Repository root (…/webpilot) so .env at repo root is loaded before env vars.
        root = Path(__file__).resolve().parents[3]
        load_dotenv(root / ".env", override=True)
        paths = Paths.from_env(root)
        paths.ensure()

        workers_min = _clamp_int(os.getenv("WORKERS_MIN"), default=1)
        workers_max = max(workers_min, _clamp_int(os.getenv("WORKERS_MAX"), default=workers_min))
        workers_current = _clamp_int(os.getenv("WORKERS_CURRENT"), default=workers_min)
        workers_current = min(workers_max, max(workers_min, workers_current))

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_base_url=os.getenv("OPENAI_BASE_URL"),
            start_url=os.getenv("START_URL", "about:blank"),
            headless=os.getenv("HEADLESS", "false").lower() in _TRUTHY,
            max_steps=_clamp_int(os.getenv("MAX_STEPS"), default=50),
            step_delay_sec=_clamp_float(os.getenv("STEP_DELAY_SEC"), default=2.0),
            wait_action_sec=_clamp_float(os.getenv("WAIT_ACTION_SEC"), default=3.0),
            navigation_wait_sec=_clamp_float(os.getenv("NAVIGATION_WAIT_SEC"), default=5.0),
            scroll_step=_clamp_int(os.getenv("SCROLL_STEP"), default=500, min_value=50),
            navigation_timeout_ms=_clamp_int(os.getenv("NAVIGATION_TIMEOUT_MS"), default=30000, min_value=1000),
            decision_timeout_sec=_clamp_float(os.getenv("DECISION_TIMEOUT_SEC"), default=30.0, min_value=0.1),
            decision_max_retries=_clamp_int(os.getenv("DECISION_MAX_RETRIES"), default=2, min_value=0),
            workers_min=workers_min,
            workers_max=workers_max,
            workers_current=workers_current,
            queue_capacity=_clamp_int(os.getenv("QUEUE_CAPACITY"), default=1024),
            paths=paths,
        )
