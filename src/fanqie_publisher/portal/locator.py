from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Locator, Page


logger = logging.getLogger(__name__)


class StrategyKind(str, Enum):
    TEXT = "text"
    ROLE = "role"
    PLACEHOLDER = "placeholder"
    CSS = "css"


@dataclass(frozen=True)
class SelectorStrategy:
    """
    One way of finding a control. Steps carry an ordered tuple of these; the first visible match wins.
    """

    kind: StrategyKind
    target: str
    role: str = ""
    exact: bool = True

    def describe(self) -> str:
        if self.kind is StrategyKind.ROLE:
            return f"role={self.role}[name={self.target!r}]"
        return f"{self.kind.value}={self.target!r}"


def by_text(text: str, *, exact: bool = True) -> SelectorStrategy:
    return SelectorStrategy(StrategyKind.TEXT, text, exact=exact)


def by_role(role: str, name: str, *, exact: bool = True) -> SelectorStrategy:
    return SelectorStrategy(StrategyKind.ROLE, name, role=role, exact=exact)


def by_placeholder(placeholder: str) -> SelectorStrategy:
    return SelectorStrategy(StrategyKind.PLACEHOLDER, placeholder, exact=False)


def by_css(selector: str) -> SelectorStrategy:
    return SelectorStrategy(StrategyKind.CSS, selector)


def build_locator(scope: Page | Frame, strategy: SelectorStrategy) -> Locator:
    if strategy.kind is StrategyKind.TEXT:
        return scope.get_by_text(strategy.target, exact=strategy.exact)
    if strategy.kind is StrategyKind.ROLE:
        return scope.get_by_role(strategy.role, name=strategy.target, exact=strategy.exact)  # type: ignore[arg-type]
    if strategy.kind is StrategyKind.PLACEHOLDER:
        return scope.get_by_placeholder(strategy.target, exact=strategy.exact)
    return scope.locator(strategy.target)


async def first_visible(loc: Locator, *, require_enabled: bool = False, limit: int = 25) -> Optional[Locator]:
    """
    First visible (optionally enabled) match of `loc`, or None. Hidden template inputs are common on the
    portal, so `.first` alone is not good enough.
    """
    try:
        n = min(await loc.count(), limit)
    except PlaywrightError:
        return None
    for i in range(n):
        cand = loc.nth(i)
        try:
            if not await cand.is_visible():
                continue
            if require_enabled and not await cand.is_enabled():
                continue
            return cand
        except PlaywrightError:
            continue
    return None


async def try_locate(
    scope: Page | Frame,
    strategies: Sequence[SelectorStrategy],
    *,
    timeout_ms: int = 0,
    poll_ms: int = 250,
    require_enabled: bool = True,
) -> Optional[Locator]:
    """
    Try `strategies` in order until one yields a visible control, re-scanning until `timeout_ms` elapses.

    Absence is a normal outcome here and is reported as None, not as an exception.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(timeout_ms, 0) / 1000
    while True:
        for strategy in strategies:
            found = await first_visible(build_locator(scope, strategy), require_enabled=require_enabled)
            if found is not None:
                logger.debug("Located control via %s", strategy.describe())
                return found
        if loop.time() >= deadline:
            return None
        await asyncio.sleep(poll_ms / 1000)
