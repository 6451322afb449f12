from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Tuple

from playwright.async_api import Error as PlaywrightError

from webpilot.core.errors import (
    ElementResolutionError,
    NavigationError,
    StateExtractionError,
    VisibilityError,
)
from webpilot.core.observe import capture_snapshot, format_page_state
from webpilot.surface.resolver import ElementResolver

JS_AUTH_MARKERS = r"""
() => {
  const markers = ["logout", "log out", "sign out", "signout", "выйти", "выход"];
  const nodes = Array.from(document.querySelectorAll("a, button, [role='button'], [role='menuitem']"));
  const loggedIn = nodes.some((el) => {
    const text = ((el.textContent || "") + " " + (el.getAttribute("href") || "")).toLowerCase();
    return markers.some((m) => text.includes(m));
  });
  let username = "";
  const userEl = document.querySelector("[data-username], [class*='username' i], [class*='user-name' i]");
  if (userEl) {
    username = (userEl.getAttribute("data-username") || userEl.textContent || "").trim().slice(0, 60);
  }
  return { loggedIn, username };
}
"""


class Surface(Protocol):
    """What a task worker needs from the page it drives."""

    async def extract_state(self) -> str: ...

    async def navigate(self, url: str) -> None: ...

    async def click_element(self, description: str) -> None: ...

    async def type_text(self, description: str, text: str) -> None: ...

    async def scroll_page(self) -> None: ...

    async def wait(self, seconds: float) -> None: ...

    def current_url(self) -> str: ...

    async def detect_auth(self) -> Tuple[bool, str]: ...

    async def close(self) -> None: ...


class PageSurface:
    def __init__(
        self,
        page: Any,
        resolver: Optional[ElementResolver] = None,
        *,
        scroll_step: int = 500,
        navigation_timeout_ms: int = 30000,
        text_log: Optional[Any] = None,
    ) -> None:
        self.page = page
        self.resolver = resolver or ElementResolver()
        self.scroll_step = scroll_step
        self.navigation_timeout_ms = navigation_timeout_ms
        self.text_log = text_log

    def _log(self, message: str) -> None:
        print(message)
        if self.text_log:
            self.text_log.write(message)

    async def extract_state(self) -> str:
        try:
            snapshot = await capture_snapshot(self.page)
        except PlaywrightError as e:
            raise StateExtractionError(f"failed to extract page state: {e}") from e
        return format_page_state(snapshot)

    async def navigate(self, url: str) -> None:
        if not url:
            raise NavigationError("<empty>", "navigate requires a url")
        if not url.startswith("http") and url != "about:blank":
            url = "https://" + url
        self._log(f"[surface] Navigating to: {url}")
        try:
            await self.page.goto(url, timeout=self.navigation_timeout_ms, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise NavigationError(url, str(e)) from e

    async def click_element(self, description: str) -> None:
        self._log(f"[surface] Attempting to click: {description}")
        resolution = await self.resolver.resolve(self.page, description, require_enabled=True)
        try:
            await resolution.locator.scroll_into_view_if_needed()
            await resolution.locator.click()
        except PlaywrightError as e:
            if "not visible" in str(e).lower():
                raise VisibilityError(description) from e
            raise
        self._log(f"[surface] Clicked {description!r} via {resolution.strategy}")

    async def type_text(self, description: str, text: str) -> None:
        self._log(f"[surface] Typing in {description}: {text}")
        try:
            resolution = await self.resolver.resolve(self.page, description, require_enabled=False)
            locator = resolution.locator
        except (ElementResolutionError, VisibilityError):
            locator = self.page.locator("input:visible, textarea:visible").first
            if await locator.count() == 0:
                raise
        await locator.fill(text or "")
        self._log(f"[surface] Typed into: {description}")

    async def scroll_page(self) -> None:
        self._log("[surface] Scrolling page")
        await self.page.evaluate(f"window.scrollBy(0, {int(self.scroll_step)})")

    async def wait(self, seconds: float) -> None:
        self._log(f"[surface] Waiting {seconds} seconds")
        await asyncio.sleep(seconds)

    def current_url(self) -> str:
        return self.page.url

    async def detect_auth(self) -> Tuple[bool, str]:
        result = await self.page.evaluate(JS_AUTH_MARKERS)
        if not isinstance(result, dict):
            return False, ""
        return bool(result.get("loggedIn")), str(result.get("username") or "")

    async def close(self) -> None:
        if self.page.is_closed():
            return
        try:
            await self.page.close()
        except PlaywrightError as e:
            print(f"[surface] page close failed: {e}")
