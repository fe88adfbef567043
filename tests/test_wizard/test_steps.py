import pytest

from app.wizard.steps import (
    PRE_PAYMENT_ORDER,
    TRANSITIONS,
    IllegalTransition,
    WizardEvent,
    WizardStep,
    back_targets,
    can_go_back,
    next_step,
)


def test_happy_path_order():
    step = WizardStep.user_type
    for event in (
        WizardEvent.submit_user_type,
        WizardEvent.submit_details,
        WizardEvent.duration_eligible,
        WizardEvent.confirm_token,
        WizardEvent.submit_drop,
        WizardEvent.pay,
        WizardEvent.payment_verified,
    ):
        step = next_step(step, event)
    assert step == WizardStep.success


def test_not_eligible_branch_returns_to_duration():
    step = next_step(WizardStep.duration, WizardEvent.duration_not_eligible)
    assert step == WizardStep.not_eligible
    assert next_step(step, WizardEvent.change_duration) == WizardStep.duration


def test_failed_offers_retry_and_close():
    assert next_step(WizardStep.failed, WizardEvent.retry) == WizardStep.processing
    assert next_step(WizardStep.failed, WizardEvent.close) == WizardStep.closed


def test_success_is_only_reachable_from_processing():
    sources = {src for (src, _), dst in TRANSITIONS.items() if dst == WizardStep.success}
    assert sources == {WizardStep.processing}


def test_processing_only_entered_by_payment_actions():
    events = {event for (_, event), dst in TRANSITIONS.items() if dst == WizardStep.processing}
    assert events == {WizardEvent.pay, WizardEvent.retry, WizardEvent.retry_verification}


@pytest.mark.parametrize(
    "step, event",
    [
        (WizardStep.user_type, WizardEvent.pay),
        (WizardStep.token_confirm, WizardEvent.submit_drop),
        (WizardStep.success, WizardEvent.retry),
        (WizardStep.processing, WizardEvent.pay),
        (WizardStep.drop_schedule, WizardEvent.payment_verified),
    ],
)
def test_illegal_transitions(step, event):
    with pytest.raises(IllegalTransition):
        next_step(step, event)


def test_close_from_closed_is_illegal():
    with pytest.raises(IllegalTransition):
        next_step(WizardStep.closed, WizardEvent.close)


def test_back_targets_are_prior_steps():
    assert back_targets(WizardStep.drop_confirmed) == PRE_PAYMENT_ORDER[:-1]
    assert back_targets(WizardStep.details) == (WizardStep.user_type,)
    assert back_targets(WizardStep.not_eligible) == (
        WizardStep.user_type,
        WizardStep.details,
        WizardStep.duration,
    )


@pytest.mark.parametrize(
    "step",
    [WizardStep.user_type, WizardStep.processing, WizardStep.success, WizardStep.failed, WizardStep.closed],
)
def test_no_back_navigation(step):
    assert can_go_back(step) is False
