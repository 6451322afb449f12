from __future__ import annotations

import asyncio
from typing import Any, Optional

from webpilot.core.models import PoolTask, Task
from webpilot.infra.tracing import NullLog


class TaskProvider:
    """Turns task text into queued tasks; attach ``queue`` to a WorkerPool."""

    def __init__(self, capacity: int = 1024, *, text_log: Optional[Any] = None) -> None:
        self.queue: "asyncio.Queue[PoolTask]" = asyncio.Queue(maxsize=capacity)
        self.text_log = text_log or NullLog()

    async def submit(self, text: str) -> str:
        text = text.strip()
        if not text:
            raise ValueError("task text must not be empty")
        task = Task.create(text)
        await self.queue.put(task)
        self.text_log.write(f"[provider] task created id={task.id} text={text!r}")
        return task.id
