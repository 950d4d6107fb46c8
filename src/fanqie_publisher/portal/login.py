from __future__ import annotations

import logging

from ..models import StepOutcome
from .sequencer import ActionSequencer
from .steps import ActionSequence


logger = logging.getLogger(__name__)


class LoginSubmitter:
    """
    Credential-submission capability for the verification state machine.

    Returns True only when every required login step (username, password, submit) actually ran.
    """

    def __init__(self, sequencer: ActionSequencer, sequence: ActionSequence, *, has_credentials: bool = True) -> None:
        self._sequencer = sequencer
        self._sequence = sequence
        self._has_credentials = has_credentials

    async def __call__(self) -> bool:
        if not self._has_credentials:
            logger.warning(
                "FANQIE_USERNAME/FANQIE_PASSWORD not set; skipping the login form. Log in manually in the browser."
            )
            return False

        results = await self._sequencer.perform(self._sequence)
        required = {step.name for step in self._sequence.steps if not step.optional}
        missing = [r.step_name for r in results if r.step_name in required and r.outcome is not StepOutcome.OK]
        if missing:
            logger.warning("Login form incomplete; steps not done: %s", ", ".join(missing))
            return False
        logger.info("Login form submitted.")
        return True
