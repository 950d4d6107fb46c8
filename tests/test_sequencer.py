from __future__ import annotations

import asyncio

import pytest
from fakes import FakeDriver

from fanqie_publisher.errors import NotAuthenticatedError, PageObserverError
from fanqie_publisher.models import AuthState, OperationName, OperationRequest, StepOutcome
from fanqie_publisher.portal.locator import by_css, by_text
from fanqie_publisher.portal.sequencer import ActionSequencer
from fanqie_publisher.portal.steps import ActionSequence, ActionStep, Interaction


def _sequence(*steps: ActionStep, entry_url: str = "") -> ActionSequence:
    return ActionSequence(name="test", steps=tuple(steps), entry_url=entry_url)


def test_missing_control_is_skipped_and_later_steps_still_run() -> None:
    driver = FakeDriver(present=lambda s: s.target != "never")
    seq = _sequence(
        ActionStep("first", (by_text("one"),)),
        ActionStep("ghost", (by_text("never"),)),
        ActionStep("third", (by_css("#three"),), Interaction.FILL, value="hello"),
    )

    results = asyncio.run(ActionSequencer(driver).perform(seq))

    assert [r.outcome for r in results] == [StepOutcome.OK, StepOutcome.SKIPPED, StepOutcome.OK]
    assert results[1].reason == "control not found"
    assert driver.actions == [("click", "text='one'", ""), ("fill", "css='#three'", "hello")]
    # No settle for the skipped step.
    assert len(driver.settles) == 2


def test_strategies_are_tried_in_order() -> None:
    driver = FakeDriver(present=lambda s: s.target in {"second", "third"})
    seq = _sequence(ActionStep("pick", (by_text("first"), by_text("second"), by_text("third"))))

    asyncio.run(ActionSequencer(driver).perform(seq))

    assert driver.actions == [("click", "text='second'", "")]


def test_select_step_chooses_the_option_value() -> None:
    driver = FakeDriver()
    seq = _sequence(
        ActionStep("choose genre", (by_css("select.genre"),), Interaction.SELECT, value="都市"),
        ActionStep("confirm", (by_text("确定"),)),
    )

    results = asyncio.run(ActionSequencer(driver).perform(seq))

    assert [r.outcome for r in results] == [StepOutcome.OK, StepOutcome.OK]
    assert driver.actions[0] == ("select", "css='select.genre'", "都市")
    assert driver.captures == ["choose genre", "confirm"]


def test_interaction_error_is_recorded_as_failed() -> None:
    driver = FakeDriver(failing=["text='bad'"])
    seq = _sequence(ActionStep("bad", (by_text("bad"),)), ActionStep("good", (by_text("good"),)))

    results = asyncio.run(ActionSequencer(driver).perform(seq))

    assert results[0].outcome is StepOutcome.FAILED
    assert results[0].reason == "boom"
    assert results[1].outcome is StepOutcome.OK


def test_interaction_error_on_closed_page_escalates() -> None:
    driver = FakeDriver(failing=["text='bad'"], closed=True)
    seq = _sequence(ActionStep("bad", (by_text("bad"),)))

    with pytest.raises(PageObserverError):
        asyncio.run(ActionSequencer(driver).perform(seq))


def test_entry_url_is_opened_and_overlays_dismissed() -> None:
    driver = FakeDriver()
    seq = _sequence(ActionStep("only", (by_text("x"),)), entry_url="https://fanqienovel.com/main/writer/")

    asyncio.run(ActionSequencer(driver).perform(seq))

    assert driver.gotos == ["https://fanqienovel.com/main/writer/"]
    assert driver.overlays_dismissed == 1
    assert driver.captures == ["only"]


@pytest.mark.parametrize(
    "state",
    [AuthState.UNAUTHENTICATED, AuthState.CHALLENGE_PENDING, AuthState.TIMED_OUT, AuthState.FAILED],
)
def test_run_refuses_without_authentication(state: AuthState) -> None:
    driver = FakeDriver()
    request = OperationRequest(operation=OperationName.CREATE_WORK)

    with pytest.raises(NotAuthenticatedError):
        asyncio.run(ActionSequencer(driver).run(request, state))

    assert driver.actions == []
    assert driver.gotos == []


def test_login_operation_runs_no_steps() -> None:
    driver = FakeDriver()

    results = asyncio.run(
        ActionSequencer(driver).run(OperationRequest(operation=OperationName.LOGIN), AuthState.AUTHENTICATED)
    )

    assert results == []
    assert driver.actions == []
