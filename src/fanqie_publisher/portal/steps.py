from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .locator import SelectorStrategy


class Interaction(str, Enum):
    FILL = "fill"
    CLICK = "click"
    SELECT = "select"


@dataclass(frozen=True)
class ActionStep:
    """
    One UI interaction: find a control with `strategies` (in order), apply `interaction`, wait `settle_ms`.
    """

    name: str
    strategies: tuple[SelectorStrategy, ...]
    interaction: Interaction = Interaction.CLICK
    value: str = ""
    settle_ms: int = 500
    wait_ms: int = 5_000
    optional: bool = False


@dataclass(frozen=True)
class ActionSequence:
    name: str
    steps: tuple[ActionStep, ...]
    entry_url: str = ""
