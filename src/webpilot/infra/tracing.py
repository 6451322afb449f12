from __future__ import annotations

import json
import uuid
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def generate_step_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class TraceLogger:
    """Append-only JSONL trace, one record per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, record: Any) -> None:
        if isinstance(record, dict):
            payload = dict(record)
        elif hasattr(record, "to_dict"):
            payload = record.to_dict()  # type: ignore[call-arg]
        elif is_dataclass(record):
            payload = asdict(record)
        else:
            payload = {"value": str(record)}
        payload.setdefault("recorded_at", datetime.now(timezone.utc).isoformat())
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")


class TextLogger:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, message: str) -> None:
        stamped = f"{datetime.now(timezone.utc).isoformat()} | {message.rstrip()}"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(stamped + "\n")


def emit(text_log: Any, message: str) -> None:
    """Console line plus the text log, the way every component reports progress."""
    print(message)
    try:
        text_log.write(message)
    except OSError as exc:
        print(f"[log] write failed: {exc}")


class NullLog:
    def write(self, *_: Any, **__: Any) -> None:
        return None


class MemoryLog:
    """Collects messages and records in memory."""

    def __init__(self) -> None:
        self.lines: list[Any] = []

    def write(self, message: Any) -> None:
        self.lines.append(message)
