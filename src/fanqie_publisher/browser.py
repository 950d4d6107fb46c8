from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import AppConfig
from .errors import BrowserLaunchError
from .models import SessionCredential
from .portal.driver import PlaywrightPageDriver
from .portal.observer import PlaywrightPageObserver
from .portal.selectors import FanqieSelectors


logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One browser, one context, one page, owned by a single run from launch to close.
    """

    def __init__(self, config: AppConfig, *, selectors: Optional[FanqieSelectors] = None) -> None:
        self._cfg = config
        self._selectors = selectors or FanqieSelectors()
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._observer: Optional[PlaywrightPageObserver] = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("BrowserSession.start() has not been called")
        return self._page

    async def start(self) -> None:
        b = self._cfg.browser
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._launch(self._pw)
            self._context = await self._browser.new_context(
                viewport={"width": b.viewport_width, "height": b.viewport_height},
                user_agent=b.user_agent,
            )
            self._page = await self._context.new_page()
        except (PlaywrightError, OSError) as e:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        self._page.set_default_navigation_timeout(b.navigation_timeout_ms)
        # Attach console/crash listeners before the first navigation so no hint is missed.
        self._observer = PlaywrightPageObserver(self._page)

    async def _launch(self, pw: Playwright) -> Browser:
        b = self._cfg.browser
        channel = (b.channel or "").strip()
        if channel:
            try:
                browser = await pw.chromium.launch(
                    channel=channel, headless=b.headless, slow_mo=b.slow_mo_ms, args=list(b.launch_args)
                )
                logger.info("Using installed browser channel=%s (headless=%s)", channel, b.headless)
                return browser
            except PlaywrightError as e:
                logger.warning(
                    "Browser channel %r not available; falling back to bundled Chromium in headless mode. (%s)",
                    channel,
                    str(e).splitlines()[0] if str(e) else e,
                )
                # Headless: a slider challenge cannot be cleared by hand here, only a restored session works.
                return await pw.chromium.launch(headless=True, slow_mo=b.slow_mo_ms, args=list(b.launch_args))

        return await pw.chromium.launch(headless=b.headless, slow_mo=b.slow_mo_ms, args=list(b.launch_args))

    def observer(self) -> PlaywrightPageObserver:
        if self._observer is None:
            raise RuntimeError("BrowserSession.start() has not been called")
        return self._observer

    def driver(self) -> PlaywrightPageDriver:
        return PlaywrightPageDriver(
            self.page,
            popup_close=self._selectors.popup_close,
            navigation_timeout_ms=self._cfg.browser.navigation_timeout_ms,
            debug_dir=self._cfg.debug.debug_dir,
            step_screenshots=self._cfg.debug.step_screenshots,
        )

    async def add_cookies(self, credentials: Sequence[SessionCredential]) -> None:
        if self._context is None:
            raise RuntimeError("BrowserSession.start() has not been called")
        await self._context.add_cookies([c.to_playwright() for c in credentials])  # type: ignore[misc]

    async def cookies(self) -> list[SessionCredential]:
        if self._context is None:
            return []
        return [SessionCredential.model_validate(dict(c)) for c in await self._context.cookies()]

    async def open(self, url: str) -> None:
        logger.info("Opening %s", url)
        await self.page.goto(url, wait_until="domcontentloaded")
        await self.page.wait_for_timeout(2000)

    async def screenshot(self, path: str) -> Path:
        out = Path(path)
        if out.parent and not out.parent.exists():
            out.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(out), full_page=True)
        return out

    async def save_debug(self, *, name_prefix: str) -> None:
        """
        Best-effort HTML + body text dump next to the screenshots, for offline selector debugging.
        """
        try:
            out_dir = Path(self._cfg.debug.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / f"{name_prefix}.html").write_text(await self.page.content(), encoding="utf-8")
            try:
                (out_dir / f"{name_prefix}.txt").write_text(await self.page.inner_text("body"), encoding="utf-8")
            except PlaywrightError:
                pass
        except (PlaywrightError, OSError, RuntimeError):
            logger.debug("Failed to save debug artifacts.", exc_info=True)

    async def linger(self, seconds: float) -> None:
        if seconds <= 0 or self._page is None or self._page.is_closed():
            return
        logger.info("Keeping the browser open for %.0fs before closing...", seconds)
        try:
            await self._page.wait_for_timeout(seconds * 1000)
        except PlaywrightError:
            pass

    async def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except PlaywrightError:
                logger.debug("Error while closing browser resources.", exc_info=True)
        self._context = None
        self._browser = None
        if self._pw is not None:
            try:
                await self._pw.stop()
            except PlaywrightError:
                logger.debug("Error while stopping Playwright.", exc_info=True)
            self._pw = None


async def launch_browser_session(config: AppConfig) -> BrowserSession:
    session = BrowserSession(config)
    await session.start()
    return session
