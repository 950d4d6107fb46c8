from .locator import SelectorStrategy, try_locate
from .observer import PageObserver, PlaywrightPageObserver
from .sequencer import ActionSequencer
from .steps import ActionSequence, ActionStep, Interaction
from .verification import VerificationResult, VerificationStateMachine

__all__ = [
    "ActionSequence",
    "ActionSequencer",
    "ActionStep",
    "Interaction",
    "PageObserver",
    "PlaywrightPageObserver",
    "SelectorStrategy",
    "VerificationResult",
    "VerificationStateMachine",
    "try_locate",
]
