import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel

from app.exceptions.custom import (
    BadGateway,
    Conflict,
    InternalError,
    PaymentNotSuccessful,
    ReservationError,
    RoomNoLongerAvailable,
    ServiceUnavailable,
)
from app.schemas.booking import (
    PAYABLE_STAGES,
    BookingRequestOut,
    BookingStage,
    PaymentOutcome,
    UserType,
)
from app.schemas.razorpay import PaymentOrder
from app.wizard.steps import (
    FailureReason,
    IllegalTransition,
    WizardEvent,
    WizardStep,
    back_targets,
    next_step,
)

logger = logging.getLogger(__name__)

CHECKOUT_NAME = "Livenzo"
CHECKOUT_DESCRIPTION = "Room Booking Confirmation Fee"

# Verification errors after which the same payment may be verified again.
_RETRIABLE_VERIFY_ERRORS = (InternalError, BadGateway, ServiceUnavailable)


class ReservationBackend(Protocol):
    async def start_booking(self, room_id: str, caller_user_id: str) -> BookingRequestOut: ...

    async def update_details(
        self,
        booking_request_id: str,
        caller_user_id: str,
        user_type: UserType,
        user_details: str,
        stay_duration: int,
    ) -> BookingRequestOut: ...

    async def schedule_drop(
        self,
        booking_request_id: str,
        caller_user_id: str,
        drop_date: date,
        drop_time: time | None = None,
    ) -> BookingRequestOut: ...

    async def create_order(
        self, booking_request_id: str, room_id: str, caller_user_id: str
    ) -> PaymentOrder: ...

    async def verify_payment(
        self,
        booking_request_id: str,
        room_id: str,
        payment_id: str,
        order_id: str,
        signature: str,
        caller_user_id: str,
    ) -> None: ...

    async def record_payment_outcome(
        self,
        booking_request_id: str,
        caller_user_id: str,
        outcome: PaymentOutcome,
    ) -> BookingRequestOut: ...


class WizardInputError(ValueError):
    """Renter input missing or invalid for the current step."""


class CheckoutSession(BaseModel):
    """Everything the hosted payment UI needs to open."""

    key_id: str
    order_id: str
    amount: int
    currency: str
    booking_request_id: str
    room_id: str
    name: str = CHECKOUT_NAME
    description: str = CHECKOUT_DESCRIPTION
    prefill: dict[str, str] = {}


class PaymentCallback(BaseModel):
    payment_id: str
    order_id: str
    signature: str


class WizardContext(BaseModel):
    room_id: str
    user_id: str
    room_title: str = ""
    booking_request_id: str | None = None
    token_amount: Decimal | None = None
    user_type: UserType | None = None
    user_details: str = ""
    stay_duration: int | None = None
    minimum_stay_months: int = 6
    drop_date: date | None = None
    drop_time: time | None = None
    checkout: CheckoutSession | None = None
    last_callback: PaymentCallback | None = None
    failure_reason: FailureReason | None = None
    failure_detail: str | None = None
    payment_status: str | None = None
    can_retry_verification: bool = False


class BookingWizard:
    """Client-side driver of the booking flow.

    Owns the current step and the collected answers; every server call goes
    through ``backend``. Step changes go through the transition table only.
    """

    def __init__(
        self,
        backend: ReservationBackend,
        room_id: str,
        user_id: str,
        room_title: str = "",
        minimum_stay_months: int = 6,
        prefill: dict[str, str] | None = None,
    ):
        self._backend = backend
        self._step = WizardStep.user_type
        self._prefill = prefill or {}
        self.context = WizardContext(
            room_id=room_id,
            user_id=user_id,
            room_title=room_title,
            minimum_stay_months=minimum_stay_months,
        )

    @classmethod
    def resume(
        cls,
        backend: ReservationBackend,
        booking: BookingRequestOut,
        room_title: str = "",
        now: datetime | None = None,
        prefill: dict[str, str] | None = None,
    ) -> "BookingWizard":
        """Reopen an existing booking request, e.g. from a dashboard banner.

        A future drop goes straight to payment; otherwise the renter schedules
        the drop first.
        """
        wizard = cls(backend, booking.room_id, booking.user_id, room_title, prefill=prefill)
        ctx = wizard.context
        ctx.booking_request_id = booking.id
        ctx.token_amount = booking.token_amount
        ctx.user_type = booking.user_type
        ctx.user_details = booking.user_details or ""
        ctx.stay_duration = booking.stay_duration
        ctx.drop_date = booking.drop_date
        ctx.drop_time = booking.drop_time

        stage = BookingStage(booking.stage)
        if booking.token_paid or stage == BookingStage.confirmed:
            wizard._step = WizardStep.success
        elif stage in PAYABLE_STAGES:
            wizard._step = (
                WizardStep.drop_confirmed
                if _drop_in_future(booking.drop_date, booking.drop_time, now)
                else WizardStep.drop_schedule
            )
        elif stage == BookingStage.not_eligible:
            wizard._step = WizardStep.not_eligible
        return wizard

    @property
    def step(self) -> WizardStep:
        return self._step

    def _fire(self, event: WizardEvent) -> WizardStep:
        previous = self._step
        self._step = next_step(self._step, event)
        logger.debug("Wizard %s -> %s (%s)", previous, self._step, event)
        return self._step

    def _require(self, *steps: WizardStep, action: str) -> None:
        if self._step not in steps:
            raise IllegalTransition(self._step, action)

    def _booking_id(self) -> str:
        if not self.context.booking_request_id:
            raise IllegalTransition(self._step, "continue without a booking request")
        return self.context.booking_request_id

    async def open(self) -> BookingRequestOut | None:
        """Create the booking request before any input, so dashboards see it."""
        if self.context.booking_request_id:
            return None
        booking = await self._backend.start_booking(
            self.context.room_id, self.context.user_id
        )
        self.context.booking_request_id = booking.id
        self.context.token_amount = booking.token_amount
        return booking

    def select_user_type(self, user_type: UserType | str | None) -> WizardStep:
        self._require(WizardStep.user_type, action="select user type")
        if not user_type:
            raise WizardInputError("Please select an option")
        try:
            self.context.user_type = UserType(user_type)
        except ValueError as exc:
            raise WizardInputError(f"Unknown user type: {user_type}") from exc
        return self._fire(WizardEvent.submit_user_type)

    def submit_details(self, details: str) -> WizardStep:
        self._require(WizardStep.details, action="submit details")
        if not details or not details.strip():
            raise WizardInputError("Please fill in the details")
        self.context.user_details = details.strip()
        return self._fire(WizardEvent.submit_details)

    async def submit_duration(self, months: int | None) -> WizardStep:
        self._require(WizardStep.duration, action="submit duration")
        if not months or months <= 0:
            raise WizardInputError("Please select a duration")

        booking = await self._backend.update_details(
            self._booking_id(),
            self.context.user_id,
            self.context.user_type,
            self.context.user_details,
            months,
        )
        self.context.stay_duration = months
        if BookingStage(booking.stage) == BookingStage.not_eligible:
            return self._fire(WizardEvent.duration_not_eligible)
        return self._fire(WizardEvent.duration_eligible)

    def change_duration(self) -> WizardStep:
        self.context.stay_duration = None
        return self._fire(WizardEvent.change_duration)

    def confirm_token(self) -> WizardStep:
        return self._fire(WizardEvent.confirm_token)

    async def submit_drop(self, drop_date: date | None, drop_time: time | None = None) -> WizardStep:
        self._require(WizardStep.drop_schedule, action="schedule drop")
        if drop_date is None:
            raise WizardInputError("Please pick a drop date")

        await self._backend.schedule_drop(
            self._booking_id(), self.context.user_id, drop_date, drop_time
        )
        self.context.drop_date = drop_date
        self.context.drop_time = drop_time
        return self._fire(WizardEvent.submit_drop)

    async def pay(self) -> CheckoutSession | None:
        """Start payment: create a gateway order and hand back the checkout session.

        Returns None if order creation failed; the wizard is then on ``failed``.
        """
        self._fire(WizardEvent.pay)
        return await self._start_checkout()

    async def retry(self) -> CheckoutSession | None:
        """New payment attempt on the same booking request."""
        self._fire(WizardEvent.retry)
        return await self._start_checkout()

    async def _start_checkout(self) -> CheckoutSession | None:
        self._clear_failure()
        ctx = self.context
        try:
            order = await self._backend.create_order(
                self._booking_id(), ctx.room_id, ctx.user_id
            )
        except ReservationError as exc:
            logger.warning("Order creation failed: %s", exc.message)
            self._fail(FailureReason.error, exc.message)
            return None

        ctx.checkout = CheckoutSession(
            key_id=order.key_id,
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            booking_request_id=self._booking_id(),
            room_id=ctx.room_id,
            prefill=dict(self._prefill),
        )
        return ctx.checkout

    async def on_payment_success(
        self, payment_id: str, order_id: str, signature: str
    ) -> WizardStep:
        """Gateway success callback: verify server-side, then settle the step."""
        self._require(WizardStep.processing, action="verify payment")
        self.context.last_callback = PaymentCallback(
            payment_id=payment_id, order_id=order_id, signature=signature
        )
        return await self._verify()

    async def retry_verification(self) -> WizardStep:
        if not (self.context.can_retry_verification and self.context.last_callback):
            raise IllegalTransition(self._step, WizardEvent.retry_verification)
        self._fire(WizardEvent.retry_verification)
        self._clear_failure()
        return await self._verify()

    async def _verify(self) -> WizardStep:
        ctx = self.context
        callback = ctx.last_callback
        try:
            await self._backend.verify_payment(
                self._booking_id(),
                ctx.room_id,
                callback.payment_id,
                callback.order_id,
                callback.signature,
                ctx.user_id,
            )
        except RoomNoLongerAvailable as exc:
            # The payment went through, so the request stays token_pending.
            return self._fail(FailureReason.room_taken, exc.message)
        except PaymentNotSuccessful as exc:
            ctx.payment_status = exc.payment_status
            await self._record_outcome(PaymentOutcome.failed)
            return self._fail(FailureReason.payment_not_successful, exc.message)
        except Conflict:
            # Already paid, or a concurrent submission of this callback holds the lock.
            return self._fire(WizardEvent.payment_verified)
        except _RETRIABLE_VERIFY_ERRORS as exc:
            ctx.can_retry_verification = True
            return self._fail(FailureReason.error, exc.message)
        except ReservationError as exc:
            await self._record_outcome(PaymentOutcome.failed)
            return self._fail(FailureReason.error, exc.message)
        return self._fire(WizardEvent.payment_verified)

    async def on_payment_cancelled(self) -> WizardStep:
        self._require(WizardStep.processing, action="cancel payment")
        await self._record_outcome(PaymentOutcome.cancelled)
        return self._fail(FailureReason.cancelled, "Payment was cancelled")

    async def on_payment_failed(self, description: str | None = None) -> WizardStep:
        self._require(WizardStep.processing, action="fail payment")
        await self._record_outcome(PaymentOutcome.failed)
        return self._fail(FailureReason.gateway_rejected, description or "Payment failed")

    async def _record_outcome(self, outcome: PaymentOutcome) -> None:
        try:
            await self._backend.record_payment_outcome(
                self._booking_id(), self.context.user_id, outcome
            )
        except ReservationError as exc:
            # The step still moves to failed; the dashboard may lag behind.
            logger.warning("Could not record payment %s: %s", outcome, exc.message)

    def _fail(self, reason: FailureReason, detail: str | None) -> WizardStep:
        self.context.failure_reason = reason
        self.context.failure_detail = detail
        return self._fire(WizardEvent.payment_failed)

    def _clear_failure(self) -> None:
        ctx = self.context
        ctx.failure_reason = None
        ctx.failure_detail = None
        ctx.payment_status = None
        ctx.can_retry_verification = False

    def back(self, target: WizardStep | None = None) -> WizardStep:
        allowed = back_targets(self._step)
        if not allowed:
            raise IllegalTransition(self._step, "go back")
        if target is None:
            target = allowed[-1]
        if target not in allowed:
            raise IllegalTransition(self._step, f"go back to '{target}'")
        if target == WizardStep.duration:
            self.context.stay_duration = None
        self._step = target
        return self._step

    def close(self) -> WizardStep:
        return self._fire(WizardEvent.close)


def _drop_in_future(
    drop_date: date | None, drop_time: time | None, now: datetime | None = None
) -> bool:
    if drop_date is None:
        return False
    now = now or datetime.now()
    drop_at = datetime.combine(drop_date, drop_time or time(0, 0))
    return drop_at > now.replace(tzinfo=None)
