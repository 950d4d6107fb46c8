from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from fanqie_publisher.errors import PageObserverError
from fanqie_publisher.models import SessionCredential
from fanqie_publisher.portal.locator import SelectorStrategy
from fanqie_publisher.portal.observer import PageObserver


LOGIN_URL = "https://fanqienovel.com/main/writer/login"
WORK_URL = "https://fanqienovel.com/main/writer/work"


@dataclass
class Frame:
    """What the page looks like between two sleeps."""

    url: str = LOGIN_URL
    challenge: bool = False
    console: tuple[str, ...] = ()


class FakeObserver(PageObserver):
    """
    Scripted page. `frames[0]` is the page before the first sleep, `frames[i]` after the i-th; the last
    frame repeats forever. Set `fail_from` to make every query from that frame on raise.
    """

    def __init__(self, frames: Sequence[Frame], *, fail_from: Optional[int] = None) -> None:
        self.frames = list(frames)
        self.index = 0
        self.fail_from = fail_from
        self.url_reads = 0
        self._drained: set[int] = set()

    @property
    def frame(self) -> Frame:
        return self.frames[min(self.index, len(self.frames) - 1)]

    def advance(self) -> None:
        self.index += 1

    def _check(self) -> None:
        if self.fail_from is not None and self.index >= self.fail_from:
            raise PageObserverError("page was closed")

    async def current_url(self) -> str:
        self._check()
        self.url_reads += 1
        return self.frame.url

    async def is_visible(self, probe: SelectorStrategy) -> bool:
        self._check()
        return self.frame.challenge

    def drain_console(self) -> list[str]:
        # Each frame's console lines are delivered once, even when the last frame repeats.
        current = min(self.index, len(self.frames) - 1)
        if current in self._drained:
            return []
        self._drained.add(current)
        return list(self.frame.console)


class FakeSleep:
    """Records requested sleeps and moves the observer one frame forward per sleep."""

    def __init__(self, observer: Optional[FakeObserver] = None) -> None:
        self.observer = observer
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.observer is not None:
            self.observer.advance()


class FakeControl:
    def __init__(self, label: str, log: list, *, error: Optional[str] = None) -> None:
        self.label = label
        self._log = log
        self._error = error

    def _do(self, action: str, value: str = "") -> None:
        if self._error:
            raise PlaywrightError(self._error)
        self._log.append((action, self.label, value))

    async def fill(self, value: str) -> None:
        self._do("fill", value)

    async def click(self) -> None:
        self._do("click")

    async def select_option(self, value: str) -> object:
        self._do("select", value)
        return [value]


class FakeDriver:
    """
    Page driver where a control exists if `present(strategy)` says so (everything, by default).
    """

    def __init__(
        self,
        *,
        present: Optional[Callable[[SelectorStrategy], bool]] = None,
        failing: Sequence[str] = (),
        closed: bool = False,
    ) -> None:
        self._present = present or (lambda _s: True)
        self._failing = set(failing)
        self.closed = closed
        self.actions: list[tuple[str, str, str]] = []
        self.gotos: list[str] = []
        self.settles: list[int] = []
        self.captures: list[str] = []
        self.lookups: list[tuple[SelectorStrategy, ...]] = []
        self.overlays_dismissed = 0

    async def goto(self, url: str) -> None:
        self.gotos.append(url)

    async def try_locate(self, strategies: Sequence[SelectorStrategy], *, timeout_ms: int) -> Optional[FakeControl]:
        self.lookups.append(tuple(strategies))
        for s in strategies:
            if self._present(s):
                label = s.describe()
                return FakeControl(label, self.actions, error="boom" if label in self._failing else None)
        return None

    async def dismiss_overlays(self) -> None:
        self.overlays_dismissed += 1

    async def settle(self, ms: int) -> None:
        self.settles.append(ms)

    async def capture(self, name: str) -> None:
        self.captures.append(name)

    def is_closed(self) -> bool:
        return self.closed


class FakeSession:
    """Stand-in for BrowserSession; records what the orchestrator did with it."""

    def __init__(
        self,
        observer: FakeObserver,
        driver: Optional[FakeDriver] = None,
        *,
        cookies: Sequence[SessionCredential] = (),
        open_error: Optional[Exception] = None,
        screenshot_error: Optional[Exception] = None,
    ) -> None:
        self._observer = observer
        self._driver = driver or FakeDriver()
        self.jar: list[SessionCredential] = list(cookies)
        self.added: list[SessionCredential] = []
        self.opened: list[str] = []
        self.screenshots: list[str] = []
        self.debug_saved: list[str] = []
        self.lingered: list[float] = []
        self.closed = False
        self._open_error = open_error
        self._screenshot_error = screenshot_error

    async def add_cookies(self, credentials: Sequence[SessionCredential]) -> None:
        self.added.extend(credentials)

    async def cookies(self) -> list[SessionCredential]:
        return list(self.jar)

    async def open(self, url: str) -> None:
        if self._open_error is not None:
            raise self._open_error
        self.opened.append(url)

    def observer(self) -> FakeObserver:
        return self._observer

    def driver(self) -> FakeDriver:
        return self._driver

    async def screenshot(self, path: str) -> str:
        if self._screenshot_error is not None:
            raise self._screenshot_error
        self.screenshots.append(path)
        return path

    async def save_debug(self, *, name_prefix: str) -> None:
        self.debug_saved.append(name_prefix)

    async def linger(self, seconds: float) -> None:
        self.lingered.append(seconds)

    async def close(self) -> None:
        self.closed = True
