"""Pure view models for each wizard step. No I/O, no state changes."""

from decimal import Decimal

from pydantic import BaseModel

from app.wizard.machine import WizardContext
from app.wizard.steps import FailureReason, WizardStep, can_go_back

DURATION_OPTIONS = (3, 6, 9, 12)


class ActionView(BaseModel):
    id: str
    label: str
    primary: bool = False


class StepView(BaseModel):
    step: WizardStep
    title: str
    message: str = ""
    actions: list[ActionView] = []
    options: list[str] = []
    can_go_back: bool = False


def format_inr(amount: Decimal | int | None) -> str:
    if amount is None:
        return "-"
    value = Decimal(str(amount))
    whole = int(value)
    digits = str(whole)
    # Indian grouping: last three digits, then pairs.
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        digits = ",".join(pairs + [tail])
    return f"₹{digits}"


def _next(label: str = "Next", action_id: str = "next") -> list[ActionView]:
    return [ActionView(id=action_id, label=label, primary=True)]


def _failure_view(ctx: WizardContext) -> StepView:
    reason = ctx.failure_reason or FailureReason.error
    retry = ActionView(id="retry", label="Try Again", primary=True)
    close = ActionView(id="close", label="Close")
    actions = [retry, close]

    if reason == FailureReason.cancelled:
        title = "Payment cancelled"
        message = "You cancelled the payment. The room is not locked yet."
    elif reason == FailureReason.gateway_rejected:
        title = "Payment failed"
        message = f"The payment gateway rejected the payment. {ctx.failure_detail or ''}".strip()
    elif reason == FailureReason.payment_not_successful:
        title = "Payment not completed"
        message = (
            f"Your payment was not successful (status: {ctx.payment_status or 'unknown'}). "
            "No room has been locked; you can try paying again."
        )
    elif reason == FailureReason.room_taken:
        title = "Room already booked"
        message = (
            "Your payment went through, but another renter locked this room first. "
            "Contact support with your payment id to get your token amount refunded."
        )
    else:
        title = "Something went wrong"
        message = ctx.failure_detail or "Please try again."
        if ctx.can_retry_verification:
            retry.primary = False
            actions.insert(
                0, ActionView(id="retry_verification", label="Check Payment Again", primary=True)
            )

    return StepView(step=WizardStep.failed, title=title, message=message, actions=actions)


def render(step: WizardStep, ctx: WizardContext) -> StepView:
    back = can_go_back(step)

    if step == WizardStep.user_type:
        return StepView(
            step=step,
            title="Tell us about yourself",
            message="This helps us match you better",
            actions=_next(),
            options=["student", "professional"],
        )
    if step == WizardStep.details:
        student = ctx.user_type == "student"
        return StepView(
            step=step,
            title="Your Education" if student else "Your Work",
            message="Which class or course are you studying?" if student else "Your job role",
            actions=_next(),
            can_go_back=back,
        )
    if step == WizardStep.duration:
        return StepView(
            step=step,
            title="How long do you plan to stay?",
            message="Select your preferred duration",
            actions=_next("Continue", "continue"),
            options=[f"{months} months" for months in DURATION_OPTIONS],
            can_go_back=back,
        )
    if step == WizardStep.not_eligible:
        return StepView(
            step=step,
            title="Minimum Stay Required",
            message=(
                f"Minimum stay for this room is {ctx.minimum_stay_months} months. "
                "You can update your duration or explore other rooms."
            ),
            actions=[
                ActionView(id="change_duration", label="Change Duration"),
                ActionView(id="close", label="Done", primary=True),
            ],
            can_go_back=back,
        )
    if step == WizardStep.token_confirm:
        return StepView(
            step=step,
            title="Lock this room",
            message=(
                f"Pay a refundable token of {format_inr(ctx.token_amount)} to lock this room. "
                "It is adjusted against your first month's rent."
            ),
            actions=_next("Continue", "confirm_token"),
            can_go_back=back,
        )
    if step == WizardStep.drop_schedule:
        return StepView(
            step=step,
            title="Schedule your drop",
            message="Pick the date and time you plan to arrive.",
            actions=_next("Confirm Drop", "submit_drop"),
            can_go_back=back,
        )
    if step == WizardStep.drop_confirmed:
        when = ctx.drop_date.strftime("%a, %d %b") if ctx.drop_date else "-"
        if ctx.drop_time:
            when += f" at {ctx.drop_time.strftime('%I:%M %p')}"
        return StepView(
            step=step,
            title="Drop scheduled",
            message=f"Drop on {when}. Pay {format_inr(ctx.token_amount)} to lock the room.",
            actions=_next("Pay & Lock Room", "pay"),
            can_go_back=back,
        )
    if step == WizardStep.processing:
        return StepView(
            step=step,
            title="Processing...",
            message="Verifying your payment. Please don't close this screen.",
        )
    if step == WizardStep.success:
        return StepView(
            step=step,
            title="Room Locked 🎉",
            message=(
                "Your booking request has been sent to the owner. "
                "We'll notify you once it's approved."
            ),
            actions=_next("Done", "close"),
        )
    if step == WizardStep.failed:
        return _failure_view(ctx)
    return StepView(step=step, title="")
