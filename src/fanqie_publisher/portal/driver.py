from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .locator import SelectorStrategy, try_locate


logger = logging.getLogger(__name__)


class PlaywrightPageDriver:
    """
    The page operations the action sequencer needs, on top of a Playwright page.
    """

    def __init__(
        self,
        page: Page,
        *,
        popup_close: Sequence[SelectorStrategy] = (),
        navigation_timeout_ms: int = 30_000,
        debug_dir: str = "data/debug",
        step_screenshots: bool = False,
    ) -> None:
        self._page = page
        self._popup_close = tuple(popup_close)
        self._navigation_timeout_ms = navigation_timeout_ms
        self._debug_dir = debug_dir
        self._step_screenshots = step_screenshots
        self._step_counter = 0

    async def goto(self, url: str) -> None:
        logger.info("Navigating to %s", url)
        await self._page.goto(url, wait_until="domcontentloaded", timeout=self._navigation_timeout_ms)
        await self._wait_for_settle()

    async def try_locate(self, strategies: Sequence[SelectorStrategy], *, timeout_ms: int) -> Optional[Locator]:
        return await try_locate(self._page, strategies, timeout_ms=timeout_ms)

    async def dismiss_overlays(self) -> None:
        """
        Best-effort close of the announcement popup the dashboard shows after login.
        """
        if not self._popup_close:
            return
        close = await try_locate(self._page, self._popup_close, timeout_ms=1_000)
        if close is None:
            return
        try:
            await close.click()
            logger.info("Closed dashboard popup.")
            await self._page.wait_for_timeout(500)
        except PlaywrightError:
            logger.debug("Failed to close dashboard popup; continuing.", exc_info=True)

    async def settle(self, ms: int) -> None:
        if ms > 0:
            await self._page.wait_for_timeout(ms)

    async def capture(self, name: str) -> None:
        """
        If enabled, save a numbered screenshot after each step (so a run can be replayed visually).
        """
        if not self._step_screenshots:
            return
        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        try:
            out_dir = Path(self._debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            await self._page.screenshot(path=str(out_dir / f"step_{self._step_counter:02d}_{safe}.png"), full_page=True)
        except (PlaywrightError, OSError):
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)

    def is_closed(self) -> bool:
        return self._page.is_closed()

    async def _wait_for_settle(self, timeout_ms: int = 10_000) -> None:
        # Avoid `networkidle`: the portal keeps analytics requests running forever.
        try:
            await self._page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
        except PlaywrightError:
            pass
        await self._page.wait_for_timeout(500)
