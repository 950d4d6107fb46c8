from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..config import VerificationConfig
from ..errors import PageObserverError
from ..models import AuthState, ConsoleEvent, ElementVisible, NavigatedTo, PageSignal
from .locator import SelectorStrategy, by_css, by_text
from .observer import PageObserver


logger = logging.getLogger(__name__)

SubmitCredentials = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class VerificationResult:
    state: AuthState
    rounds: int = 0
    submitted: bool = False
    challenge_seen: bool = False
    reason: str = ""
    transitions: list[AuthState] = field(default_factory=list)

    @property
    def authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED


@dataclass
class _RoundView:
    url: str
    challenge_visible: bool
    challenge_hint: bool
    resolved_hint: bool


class VerificationStateMachine:
    """
    Drives the login from "unknown" to Authenticated, TimedOut or Failed by polling the page.

    The challenge (slider captcha) is never solved here; a human clears it in the headful browser and we
    notice through navigation. Authenticated needs the URL on an authenticated route with no challenge
    indicator visible in the same round; a route match while the indicator is still up is only accepted
    once it holds for a second consecutive round.

    Console messages are hints only: a "resolved" line makes us re-read the URL straight away, it never
    changes the state by itself.
    """

    def __init__(
        self,
        observer: PageObserver,
        submit: SubmitCredentials,
        *,
        config: Optional[VerificationConfig] = None,
        sleep: Optional[Sleep] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        self._observer = observer
        self._submit = submit
        self._cfg = config or VerificationConfig()
        self._sleep = sleep or asyncio.sleep
        self._cancel = cancel

        self._probes: list[SelectorStrategy] = [by_css(s) for s in self._cfg.challenge_selectors] + [
            by_text(t, exact=False) for t in self._cfg.challenge_texts
        ]
        self._probe_labels = {p.describe() for p in self._probes}

        self.state = AuthState.UNAUTHENTICATED
        self._transitions: list[AuthState] = [self.state]
        self._rounds = 0
        self._submitted = False
        self._challenge_seen = False

    def is_authenticated_route(self, url: str) -> bool:
        return any(pattern in (url or "") for pattern in self._cfg.authenticated_routes)

    async def run(self) -> VerificationResult:
        try:
            return await self._run()
        except PageObserverError as e:
            logger.error("Lost the page while waiting for login (round=%d): %s", self._rounds, e)
            self._enter(AuthState.FAILED, "page observer error")
            return self._result(reason=str(e))

    async def _run(self) -> VerificationResult:
        url = await self._observer.current_url()
        if self.is_authenticated_route(url):
            self._enter(AuthState.AUTHENTICATED, "restored session already valid")
            return self._result()

        await self._submit_credentials()
        return await self._poll()

    async def _submit_credentials(self) -> None:
        try:
            submitted = bool(await self._submit())
        except Exception:
            # Layouts vary; a missing control must not stop us from noticing a login that succeeds anyway.
            logger.warning("Credential submission raised; continuing to poll.", exc_info=True)
            submitted = False

        self._submitted = submitted
        if submitted:
            self._enter(AuthState.CREDENTIALS_SUBMITTED, "login form submitted")
        else:
            logger.warning("Credentials were not submitted (form incomplete or no credentials); polling anyway.")

    async def _poll(self) -> VerificationResult:
        cfg = self._cfg
        logger.info(
            "Waiting for login to complete (max %d rounds x %.1fs = %.0fs).",
            cfg.max_rounds,
            cfg.poll_interval_seconds,
            cfg.budget_seconds,
        )

        challenge_was_visible = False
        route_pending_confirm = False
        for round_no in range(1, cfg.max_rounds + 1):
            self._rounds = round_no
            if await self._pause(cfg.poll_interval_seconds):
                logger.warning("Login wait cancelled (round %d/%d).", round_no, cfg.max_rounds)
                self._enter(AuthState.FAILED, "cancelled")
                return self._result(reason="cancelled")

            view = await self._read_round()
            if view.challenge_hint:
                logger.info("Console reports a challenge was shown.")
            if view.resolved_hint and not self.is_authenticated_route(view.url):
                logger.info("Console reports the challenge resolved; re-checking navigation.")
                view.url = await self._observer.current_url()

            if self.is_authenticated_route(view.url):
                if not view.challenge_visible or route_pending_confirm:
                    self._enter(AuthState.AUTHENTICATED, f"authenticated route reached: {view.url}")
                    return self._result()
                logger.info(
                    "Authenticated route reached but challenge indicator still visible (round %d); confirming next round.",
                    round_no,
                )
                route_pending_confirm = True
                challenge_was_visible = True
                continue
            route_pending_confirm = False

            if view.challenge_visible:
                self._challenge_seen = True
                self._enter(AuthState.CHALLENGE_PENDING, "challenge indicator visible")
                logger.warning(
                    "Verification challenge pending (round %d/%d); waiting for manual completion in the browser.",
                    round_no,
                    cfg.max_rounds,
                )
            elif challenge_was_visible:
                logger.info(
                    "Challenge indicator cleared (round %d); waiting for navigation to confirm login.", round_no
                )
            else:
                logger.debug("Not authenticated yet (round %d/%d, url=%s).", round_no, cfg.max_rounds, view.url)
            challenge_was_visible = view.challenge_visible

        logger.error(
            "Login did not complete within %d rounds (%.0fs); giving up.", cfg.max_rounds, cfg.budget_seconds
        )
        self._enter(AuthState.TIMED_OUT, "round budget exhausted")
        return self._result(reason="timed out waiting for login/verification")

    async def _read_round(self) -> _RoundView:
        signals: list[PageSignal] = await self._observer.observe(self._probes)
        view = _RoundView(url="", challenge_visible=False, challenge_hint=False, resolved_hint=False)
        for signal in signals:
            if isinstance(signal, NavigatedTo):
                view.url = signal.url
            elif isinstance(signal, ElementVisible):
                if signal.visible and signal.probe in self._probe_labels:
                    view.challenge_visible = True
            elif isinstance(signal, ConsoleEvent):
                text = signal.text
                # "sliderView show resolve" contains "sliderView show"; check resolution first.
                if any(h in text for h in self._cfg.resolved_console_hints):
                    view.resolved_hint = True
                elif any(h in text for h in self._cfg.challenge_console_hints):
                    view.challenge_hint = True
        return view

    async def _pause(self, seconds: float) -> bool:
        """
        Sleep one poll interval. Returns True if the cancel event fired instead.
        """
        if self._cancel is None:
            await self._sleep(seconds)
            return False
        if self._cancel.is_set():
            return True

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also reached when the run itself is cancelled mid-wait.
            pending = [t for t in (sleeper, waiter) if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        return self._cancel.is_set()

    def _enter(self, state: AuthState, why: str = "") -> None:
        if state is self.state:
            return
        logger.info("Auth state %s -> %s (%s)", self.state.value, state.value, why or "-")
        self.state = state
        self._transitions.append(state)

    def _result(self, *, reason: str = "") -> VerificationResult:
        return VerificationResult(
            state=self.state,
            rounds=self._rounds,
            submitted=self._submitted,
            challenge_seen=self._challenge_seen,
            reason=reason,
            transitions=list(self._transitions),
        )
