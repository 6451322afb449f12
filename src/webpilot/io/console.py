"""Operator console: the single reader of stdin.

Goal prompts and security confirmations both go through one ``ConsoleInput``
so a line typed by the operator always answers the prompt that is on screen.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


class ConsoleInput:
    def __init__(self, reader: Callable[[], str] = input) -> None:
        self._reader = reader
        self._lock = threading.Lock()

    def ask(self, prompt: str) -> Optional[str]:
        """Print ``prompt`` and read one line; None on EOF. One prompt at a time."""
        with self._lock:
            print(prompt, end="", flush=True)
            try:
                return self._reader()
            except EOFError:
                return None


def _settle(future: "asyncio.Future[Any]", result: Any, error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def in_daemon_thread(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking call on a daemon thread.

    Unlike ``asyncio.to_thread`` the interpreter does not wait for it on
    shutdown, so an unanswered ``input()`` cannot hold up Ctrl-C.
    """
    loop = asyncio.get_running_loop()
    future: "asyncio.Future[T]" = loop.create_future()

    def runner() -> None:
        try:
            result, error = func(*args), None
        except Exception as exc:
            result, error = None, exc
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            # Loop already closed; nobody is waiting for the answer.
            return

    threading.Thread(target=runner, name="console-input", daemon=True).start()
    return await future
