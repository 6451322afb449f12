from __future__ import annotations

from typing import List, Optional

from playwright.async_api import BrowserContext, Error as PlaywrightError, Playwright, async_playwright

from webpilot.config.config import Settings
from webpilot.surface.page_surface import PageSurface
from webpilot.surface.resolver import ElementResolver


class BrowserRuntime:
    """Owns the Playwright browser context and hands out one page per worker."""

    def __init__(self, settings: Settings, *, resolver: Optional[ElementResolver] = None, text_log=None) -> None:
        self.settings = settings
        self.resolver = resolver or ElementResolver()
        self.text_log = text_log
        self._playwright: Optional[Playwright] = None
        self._context: Optional[BrowserContext] = None
        self._surfaces: List[PageSurface] = []

    async def launch(self) -> None:
        if self._context:
            return
        self._playwright = await async_playwright().start()
        # Persistent context keeps cookies and logins between runs.
        self._context = await self._playwright.chromium.launch_persistent_context(
            user_data_dir=str(self.settings.paths.user_data_dir),
            headless=self.settings.headless,
            no_viewport=True,
            args=["--start-maximized"],
        )

    async def new_surface(self) -> PageSurface:
        if not self._context:
            await self.launch()
        assert self._context is not None
        # The persistent context opens with one blank page; hand that out first.
        claimed = {id(s.page) for s in self._surfaces}
        page = next((p for p in self._context.pages if id(p) not in claimed and not p.is_closed()), None)
        if page is None:
            page = await self._context.new_page()
        surface = PageSurface(
            page,
            self.resolver,
            scroll_step=self.settings.scroll_step,
            navigation_timeout_ms=self.settings.navigation_timeout_ms,
            text_log=self.text_log,
        )
        if self.settings.start_url:
            await surface.navigate(self.settings.start_url)
        self._surfaces.append(surface)
        return surface

    async def close(self) -> None:
        # Close gracefully; the user may already have closed the browser window.
        try:
            if self._context:
                await self._context.close()
        except PlaywrightError as exc:
            print(f"[runtime] context close failed: {exc}")
        finally:
            self._context = None
            self._surfaces = []
        try:
            if self._playwright:
                await self._playwright.stop()
        except PlaywrightError as exc:
            print(f"[runtime] playwright stop failed: {exc}")
        finally:
            self._playwright = None
