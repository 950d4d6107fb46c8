from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Sequence

from playwright.async_api import ConsoleMessage, Page
from playwright.async_api import Error as PlaywrightError

from ..errors import PageObserverError
from ..models import ConsoleEvent, ElementVisible, NavigatedTo, PageSignal
from .locator import SelectorStrategy, build_locator, first_visible


logger = logging.getLogger(__name__)

# Console lines the portal spams on every request; never useful as hints.
_CONSOLE_NOISE = ("x-tt-zhal", "AppLog")


class PageObserver(ABC):
    """
    Snapshot-style view of a live page: where it is, what is visible, and what it logged since last asked.

    Implementations raise PageObserverError when the page itself is gone; anything else is reported as
    an observation.
    """

    @abstractmethod
    async def current_url(self) -> str:
        ...

    @abstractmethod
    async def is_visible(self, probe: SelectorStrategy) -> bool:
        ...

    @abstractmethod
    def drain_console(self) -> list[str]:
        ...

    async def observe(self, probes: Sequence[SelectorStrategy]) -> list[PageSignal]:
        signals: list[PageSignal] = [NavigatedTo(await self.current_url())]
        for probe in probes:
            signals.append(ElementVisible(probe.describe(), await self.is_visible(probe)))
        signals.extend(ConsoleEvent(text) for text in self.drain_console())
        return signals


class PlaywrightPageObserver(PageObserver):
    def __init__(self, page: Page, *, console_buffer: int = 500) -> None:
        self._page = page
        self._console: deque[str] = deque(maxlen=console_buffer)
        self._crashed = False
        page.on("console", self._on_console)
        page.on("crash", self._on_crash)

    def _on_console(self, msg: ConsoleMessage) -> None:
        text = msg.text
        if any(noise in text for noise in _CONSOLE_NOISE):
            return
        self._console.append(text)

    def _on_crash(self, _page: Page) -> None:
        logger.error("Browser page crashed.")
        self._crashed = True

    def _ensure_alive(self) -> None:
        if self._crashed:
            raise PageObserverError("page crashed")
        if self._page.is_closed():
            raise PageObserverError("page was closed")

    async def current_url(self) -> str:
        self._ensure_alive()
        return self._page.url or ""

    async def is_visible(self, probe: SelectorStrategy) -> bool:
        self._ensure_alive()
        try:
            return await first_visible(build_locator(self._page, probe)) is not None
        except PlaywrightError as e:
            # Mid-navigation queries fail with "execution context was destroyed"; only a dead page is fatal.
            self._ensure_alive()
            logger.debug("Visibility probe %s failed transiently: %s", probe.describe(), e)
            return False

    def drain_console(self) -> list[str]:
        out = list(self._console)
        self._console.clear()
        return out
