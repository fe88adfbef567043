"""Booking wizard steps and the table of legal transitions between them."""

from enum import StrEnum


class WizardStep(StrEnum):
    user_type = "user-type"
    details = "details"
    duration = "duration"
    not_eligible = "not-eligible"
    token_confirm = "token-confirm"
    drop_schedule = "drop-schedule"
    drop_confirmed = "drop-confirmed"
    processing = "processing"
    success = "success"
    failed = "failed"
    closed = "closed"


class WizardEvent(StrEnum):
    submit_user_type = "submit_user_type"
    submit_details = "submit_details"
    duration_eligible = "duration_eligible"
    duration_not_eligible = "duration_not_eligible"
    change_duration = "change_duration"
    confirm_token = "confirm_token"
    submit_drop = "submit_drop"
    pay = "pay"
    payment_verified = "payment_verified"
    payment_failed = "payment_failed"
    retry = "retry"
    retry_verification = "retry_verification"
    close = "close"


class FailureReason(StrEnum):
    cancelled = "cancelled"
    gateway_rejected = "gateway_rejected"
    payment_not_successful = "payment_not_successful"
    room_taken = "room_taken"
    error = "error"


TRANSITIONS: dict[tuple[WizardStep, WizardEvent], WizardStep] = {
    (WizardStep.user_type, WizardEvent.submit_user_type): WizardStep.details,
    (WizardStep.details, WizardEvent.submit_details): WizardStep.duration,
    (WizardStep.duration, WizardEvent.duration_eligible): WizardStep.token_confirm,
    (WizardStep.duration, WizardEvent.duration_not_eligible): WizardStep.not_eligible,
    (WizardStep.not_eligible, WizardEvent.change_duration): WizardStep.duration,
    (WizardStep.token_confirm, WizardEvent.confirm_token): WizardStep.drop_schedule,
    (WizardStep.drop_schedule, WizardEvent.submit_drop): WizardStep.drop_confirmed,
    (WizardStep.drop_confirmed, WizardEvent.pay): WizardStep.processing,
    (WizardStep.processing, WizardEvent.payment_verified): WizardStep.success,
    (WizardStep.processing, WizardEvent.payment_failed): WizardStep.failed,
    (WizardStep.failed, WizardEvent.retry): WizardStep.processing,
    (WizardStep.failed, WizardEvent.retry_verification): WizardStep.processing,
}

# Steps before payment starts, in the order a renter walks them.
PRE_PAYMENT_ORDER: tuple[WizardStep, ...] = (
    WizardStep.user_type,
    WizardStep.details,
    WizardStep.duration,
    WizardStep.token_confirm,
    WizardStep.drop_schedule,
    WizardStep.drop_confirmed,
)

# not-eligible branches off duration, so its history ends there.
_BACK_HISTORY: dict[WizardStep, tuple[WizardStep, ...]] = {
    step: PRE_PAYMENT_ORDER[:index] for index, step in enumerate(PRE_PAYMENT_ORDER)
}
_BACK_HISTORY[WizardStep.not_eligible] = PRE_PAYMENT_ORDER[:3]

TERMINAL_STEPS = {WizardStep.success, WizardStep.closed}


class IllegalTransition(Exception):
    def __init__(self, step: WizardStep, event: str):
        self.step = step
        self.event = event
        super().__init__(f"Cannot {event} from step '{step}'")


def next_step(step: WizardStep, event: WizardEvent) -> WizardStep:
    if event == WizardEvent.close:
        if step == WizardStep.closed:
            raise IllegalTransition(step, event)
        return WizardStep.closed
    try:
        return TRANSITIONS[(step, event)]
    except KeyError:
        raise IllegalTransition(step, event) from None


def back_targets(step: WizardStep) -> tuple[WizardStep, ...]:
    """Steps the renter may navigate back to. Empty once payment has started."""
    return _BACK_HISTORY.get(step, ())


def can_go_back(step: WizardStep) -> bool:
    return bool(back_targets(step))
