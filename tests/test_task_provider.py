import asyncio

import pytest

from webpilot.infra.task_provider import TaskProvider


def test_submit_queues_task_with_fresh_id():
    async def scenario():
        provider = TaskProvider(capacity=4)
        first = await provider.submit("  open the docs ")
        second = await provider.submit("open the docs")
        return first, second, provider.queue.get_nowait(), provider.queue.get_nowait()

    first, second, a, b = asyncio.run(scenario())
    assert first != second
    assert (a.id, a.text) == (first, "open the docs")
    assert b.id == second


def test_blank_text_rejected():
    async def scenario():
        with pytest.raises(ValueError):
            await TaskProvider().submit("   ")

    asyncio.run(scenario())
