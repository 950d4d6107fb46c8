from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError

from ..config import PlatformConfig
from ..errors import NotAuthenticatedError, PageObserverError
from ..models import AuthState, OperationRequest, StepOutcome, StepResult
from .flows import build_sequence
from .locator import SelectorStrategy
from .selectors import FanqieSelectors
from .steps import ActionSequence, ActionStep, Interaction


logger = logging.getLogger(__name__)


class Control(Protocol):
    # Playwright's Locator satisfies this.
    async def fill(self, value: str) -> None: ...

    async def click(self) -> None: ...

    async def select_option(self, value: str) -> object: ...


class PageDriver(Protocol):
    async def goto(self, url: str) -> None: ...

    async def try_locate(self, strategies: Sequence[SelectorStrategy], *, timeout_ms: int) -> Optional[Control]: ...

    async def dismiss_overlays(self) -> None: ...

    async def settle(self, ms: int) -> None: ...

    async def capture(self, name: str) -> None: ...

    def is_closed(self) -> bool: ...


class ActionSequencer:
    """
    Runs declarative step lists against the page, strictly in order.

    Optimistic: a control that never shows up is recorded as Skipped and the
    sequence carries on. Clicks already sent cannot be undone, so there is no rollback.
    """

    def __init__(
        self,
        driver: PageDriver,
        *,
        platform: Optional[PlatformConfig] = None,
        selectors: Optional[FanqieSelectors] = None,
    ) -> None:
        self._driver = driver
        self._platform = platform or PlatformConfig()
        self._selectors = selectors or FanqieSelectors()

    async def run(self, request: OperationRequest, auth_state: AuthState) -> list[StepResult]:
        if auth_state is not AuthState.AUTHENTICATED:
            raise NotAuthenticatedError(
                f"Refusing to run {request.operation.value!r}: auth state is {auth_state.value!r}"
            )
        sequence = build_sequence(request, platform=self._platform, selectors=self._selectors)
        return await self.perform(sequence)

    async def perform(self, sequence: ActionSequence) -> list[StepResult]:
        logger.info("Running sequence %r (%d steps)", sequence.name, len(sequence.steps))
        if sequence.entry_url:
            await self._driver.goto(sequence.entry_url)
            await self._driver.dismiss_overlays()

        results: list[StepResult] = []
        for idx, step in enumerate(sequence.steps, start=1):
            result = await self._perform_step(step)
            logger.info(
                "Step %d/%d %s: %s%s",
                idx,
                len(sequence.steps),
                step.name,
                result.outcome.value,
                f" ({result.reason})" if result.reason else "",
            )
            results.append(result)

        ok = sum(1 for r in results if r.outcome is StepOutcome.OK)
        logger.info("Sequence %r finished: %d/%d steps ok", sequence.name, ok, len(results))
        return results

    async def _perform_step(self, step: ActionStep) -> StepResult:
        control = await self._driver.try_locate(step.strategies, timeout_ms=step.wait_ms)
        if control is None:
            if step.optional:
                logger.info("Optional control for %s not present; skipping.", step.name)
            else:
                tried = ", ".join(s.describe() for s in step.strategies)
                logger.warning("Control for %s not found within %dms (tried: %s); skipping.", step.name, step.wait_ms, tried)
            return StepResult.skipped(step.name)

        try:
            await self._interact(control, step)
        except PlaywrightError as e:
            if self._driver.is_closed():
                raise PageObserverError(f"page closed during step {step.name!r}") from e
            logger.warning("Interaction for %s failed: %s", step.name, e)
            await self._driver.settle(step.settle_ms)
            return StepResult.failed(step.name, str(e))

        await self._driver.settle(step.settle_ms)
        await self._driver.capture(step.name)
        return StepResult.ok(step.name)

    async def _interact(self, control: Control, step: ActionStep) -> None:
        if step.interaction is Interaction.FILL:
            await control.fill(step.value)
        elif step.interaction is Interaction.CLICK:
            await control.click()
        elif step.interaction is Interaction.SELECT:
            await control.select_option(step.value)
        else:
            raise ValueError(f"Unsupported interaction: {step.interaction!r}")
