from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError

from .browser import launch_browser_session
from .config import AppConfig
from .errors import SessionStoreError
from .models import OperationName, OperationRequest, SessionCredential, StepOutcome, StepResult
from .portal.flows import login_sequence
from .portal.login import LoginSubmitter
from .portal.observer import PageObserver
from .portal.selectors import FanqieSelectors
from .portal.sequencer import ActionSequencer, PageDriver
from .portal.verification import VerificationResult, VerificationStateMachine
from .session_store import SessionStore


logger = logging.getLogger(__name__)


class BrowserSessionLike(Protocol):
    async def add_cookies(self, credentials: Sequence[SessionCredential]) -> None: ...

    async def cookies(self) -> list[SessionCredential]: ...

    async def open(self, url: str) -> None: ...

    def observer(self) -> PageObserver: ...

    def driver(self) -> PageDriver: ...

    async def screenshot(self, path: str) -> object: ...

    async def save_debug(self, *, name_prefix: str) -> None: ...

    async def linger(self, seconds: float) -> None: ...

    async def close(self) -> None: ...


SessionFactory = Callable[[AppConfig], Awaitable[BrowserSessionLike]]


@dataclass
class RunOutcome:
    operation: OperationName
    auth: Optional[VerificationResult] = None
    steps: list[StepResult] = field(default_factory=list)
    error: str = ""
    screenshot: str = ""

    @property
    def ok(self) -> bool:
        if self.error or self.auth is None or not self.auth.authenticated:
            return False
        return all(r.outcome is StepOutcome.OK for r in self.steps)

    def summary(self) -> str:
        auth = self.auth.state.value if self.auth else "-"
        counts = {o: sum(1 for r in self.steps if r.outcome is o) for o in StepOutcome}
        return (
            f"operation={self.operation.value} auth={auth} "
            f"steps ok={counts[StepOutcome.OK]} skipped={counts[StepOutcome.SKIPPED]} "
            f"failed={counts[StepOutcome.FAILED]}" + (f" error={self.error!r}" if self.error else "")
        )


class RunOrchestrator:
    """
    One run, end to end: launch, restore cookies, log in (or confirm the restored session), persist cookies,
    then run the requested operation's steps.

    Only a failed browser launch escapes `execute`; every other failure is logged, screenshotted and
    reported in the returned `RunOutcome`.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        store: Optional[SessionStore] = None,
        session_factory: Optional[SessionFactory] = None,
        selectors: Optional[FanqieSelectors] = None,
        fresh_session: bool = False,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._cfg = config
        self._store = store or SessionStore(config.session.cookie_file)
        self._session_factory = session_factory or launch_browser_session
        self._selectors = selectors or FanqieSelectors()
        self._fresh_session = fresh_session
        self._sleep = sleep

    async def execute(self, request: OperationRequest, *, cancel: Optional[asyncio.Event] = None) -> RunOutcome:
        t0 = time.time()
        outcome = RunOutcome(operation=request.operation)
        logger.info("Starting run (operation=%s)", request.operation.value)

        # BrowserLaunchError propagates: nothing to clean up and nothing useful to report.
        session = await self._session_factory(self._cfg)
        try:
            await self._restore_cookies(session)
            await session.open(self._cfg.platform.login_url)

            machine = VerificationStateMachine(
                session.observer(),
                self._submitter(session),
                config=self._cfg.verification,
                sleep=self._sleep,
                cancel=cancel,
            )
            outcome.auth = await machine.run()
            logger.info(
                "Verification finished: state=%s rounds=%d submitted=%s challenge_seen=%s",
                outcome.auth.state.value,
                outcome.auth.rounds,
                outcome.auth.submitted,
                outcome.auth.challenge_seen,
            )

            # Persisted whatever the verification outcome.
            await self._persist_cookies(session)

            if outcome.auth.authenticated:
                sequencer = ActionSequencer(session.driver(), platform=self._cfg.platform, selectors=self._selectors)
                outcome.steps = await sequencer.run(request, outcome.auth.state)
            else:
                logger.error(
                    "Not authenticated (state=%s%s); skipping operation %s.",
                    outcome.auth.state.value,
                    f", reason={outcome.auth.reason}" if outcome.auth.reason else "",
                    request.operation.value,
                )
        except Exception as e:
            logger.exception("Run failed (operation=%s): %s", request.operation.value, e)
            outcome.error = str(e) or e.__class__.__name__
            outcome.screenshot = await self._capture_error(session, request)
        finally:
            try:
                await session.linger(self._cfg.browser.linger_seconds)
            finally:
                await session.close()

        logger.info("Run finished (%s seconds=%.2f)", outcome.summary(), time.time() - t0)
        return outcome

    def _submitter(self, session: BrowserSessionLike) -> LoginSubmitter:
        creds = self._cfg.credentials
        return LoginSubmitter(
            ActionSequencer(session.driver(), platform=self._cfg.platform, selectors=self._selectors),
            login_sequence(creds, selectors=self._selectors),
            has_credentials=bool(creds.username and creds.password),
        )

    async def _restore_cookies(self, session: BrowserSessionLike) -> None:
        if self._fresh_session:
            logger.info("Fresh session requested; not restoring stored cookies.")
            return
        creds = self._store.restore()
        if not creds:
            return
        try:
            await session.add_cookies(creds)
        except PlaywrightError as e:
            # One bad record makes Playwright reject the whole batch; carry on and log in instead.
            logger.warning("Browser rejected restored cookies; continuing without them: %s", e)

    async def _persist_cookies(self, session: BrowserSessionLike) -> None:
        try:
            self._store.persist(await session.cookies())
        except (SessionStoreError, PlaywrightError) as e:
            logger.error("Failed to save session cookies: %s", e)

    async def _capture_error(self, session: BrowserSessionLike, request: OperationRequest) -> str:
        path = self._cfg.debug.error_screenshot
        if not path:
            return ""
        try:
            await session.screenshot(path)
            logger.error("Saved error screenshot: %s", path)
        except (PlaywrightError, OSError, RuntimeError) as e:
            # Never let the diagnostic mask the original error.
            logger.warning("Failed to save error screenshot: %s", e)
            return ""
        await session.save_debug(name_prefix=f"error_{request.operation.value}")
        return path
