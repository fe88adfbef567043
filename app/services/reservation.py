import asyncio
import logging
import time
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.exceptions.custom import (
    BadGateway,
    BadRequest,
    Conflict,
    Forbidden,
    GatewayRejected,
    GatewayUnavailable,
    InternalError,
    InvalidSignature,
    NotFound,
    OrderMismatch,
    PaymentNotFound,
    PaymentNotSuccessful,
    RoomNoLongerAvailable,
    ServiceUnavailable,
    StoreError,
)
from app.schemas.booking import (
    ACTIVE_STATUSES,
    PAYABLE_STAGES,
    STAGE_STATUS,
    BookingRequestOut,
    BookingStage,
    PaymentOutcome,
    UserType,
)
from app.schemas.razorpay import PaymentOrder
from app.services.razorpay import RazorpayService
from app.services.signature import verify_signature
from app.store.models import BookingRequest
from app.store.reservations import ReservationStore

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_STAY_MONTHS = 6
PAYMENT_TYPE = "room_booking_token"


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a rupee amount to paise. Raises BadRequest unless positive and finite."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise BadRequest("Invalid token amount") from exc
    if not value.is_finite() or value <= 0:
        raise BadRequest("Invalid token amount")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _stage_fields(stage: BookingStage) -> dict:
    return {"stage": stage.value, "status": STAGE_STATUS[stage].value}


class ReservationService:
    def __init__(
        self,
        store: ReservationStore,
        gateway: RazorpayService,
        key_secret: str,
        currency: str = "INR",
        minimum_stay_months: int = DEFAULT_MINIMUM_STAY_MONTHS,
    ):
        self._store = store
        self._gateway = gateway
        self._key_secret = key_secret
        self._currency = currency
        self._minimum_stay_months = minimum_stay_months

    @property
    def minimum_stay_months(self) -> int:
        return self._minimum_stay_months

    @staticmethod
    async def _in_thread(func, *args, **kwargs):
        """Run a blocking store call off the event loop. StoreError propagates."""
        return await asyncio.to_thread(func, *args, **kwargs)

    async def _store_call(self, func, *args, **kwargs):
        try:
            return await self._in_thread(func, *args, **kwargs)
        except StoreError as exc:
            raise InternalError("Database error") from exc

    async def _load_owned(
        self,
        booking_request_id: str,
        caller_user_id: str,
        room_id: str | None = None,
    ) -> BookingRequest:
        booking = await self._store_call(
            self._store.get_booking_request, booking_request_id
        )
        if booking is None:
            raise NotFound("Booking request not found")
        if booking.user_id != caller_user_id:
            raise Forbidden("Access denied")
        if room_id is not None and booking.room_id != room_id:
            raise BadRequest("Invalid room for this booking request")
        return booking

    async def _update(self, booking_request_id: str, **fields) -> BookingRequestOut:
        booking = await self._store_call(
            self._store.update_booking_request, booking_request_id, **fields
        )
        if booking is None:
            raise NotFound("Booking request not found")
        return BookingRequestOut.model_validate(booking)

    # --- wizard session ---

    async def start_booking(self, room_id: str, caller_user_id: str) -> BookingRequestOut:
        room = await self._store_call(self._store.get_room, room_id)
        if room is None:
            raise NotFound("Room not found")
        if not room.available:
            raise Conflict("Room is not available")

        booking = await self._store_call(
            self._store.create_booking_request, room_id, caller_user_id, room.price
        )
        logger.info(
            "Booking request %s started for room %s by %s",
            booking.id, room_id, caller_user_id,
        )
        return BookingRequestOut.model_validate(booking)

    async def get_booking(
        self, booking_request_id: str, caller_user_id: str
    ) -> BookingRequestOut:
        booking = await self._load_owned(booking_request_id, caller_user_id)
        return BookingRequestOut.model_validate(booking)

    async def update_details(
        self,
        booking_request_id: str,
        caller_user_id: str,
        user_type: UserType,
        user_details: str,
        stay_duration: int,
    ) -> BookingRequestOut:
        booking = await self._load_owned(booking_request_id, caller_user_id)
        if booking.token_paid:
            raise Conflict("Token already paid")
        if not user_details or not user_details.strip():
            raise BadRequest("Details are required")
        if stay_duration <= 0:
            raise BadRequest("Invalid stay duration")
        try:
            user_type = UserType(user_type)
        except ValueError as exc:
            raise BadRequest(f"Unknown user type: {user_type}") from exc

        eligible = stay_duration >= self._minimum_stay_months
        stage = BookingStage.token_pending if eligible else BookingStage.not_eligible
        return await self._update(
            booking_request_id,
            user_type=user_type.value,
            user_details=user_details.strip(),
            stay_duration=stay_duration,
            token_required=eligible,
            **_stage_fields(stage),
        )

    async def schedule_drop(
        self,
        booking_request_id: str,
        caller_user_id: str,
        drop_date: date,
        drop_time=None,
    ) -> BookingRequestOut:
        booking = await self._load_owned(booking_request_id, caller_user_id)
        if booking.token_paid:
            raise Conflict("Token already paid")
        if BookingStage(booking.stage) not in PAYABLE_STAGES:
            raise BadRequest("Choose an eligible stay duration before scheduling a drop")
        if drop_date < date.today():
            raise BadRequest("Drop date cannot be in the past")

        return await self._update(
            booking_request_id, drop_date=drop_date, drop_time=drop_time
        )

    async def record_payment_outcome(
        self,
        booking_request_id: str,
        caller_user_id: str,
        outcome: PaymentOutcome,
    ) -> BookingRequestOut:
        booking = await self._load_owned(booking_request_id, caller_user_id)
        if booking.token_paid:
            # A late cancel callback must not undo a confirmed booking.
            return BookingRequestOut.model_validate(booking)
        if BookingStage(booking.stage) not in PAYABLE_STAGES:
            raise BadRequest("No payment in progress for this booking request")

        stage = (
            BookingStage.payment_cancelled
            if PaymentOutcome(outcome) == PaymentOutcome.cancelled
            else BookingStage.payment_failed
        )
        logger.info("Booking request %s payment %s", booking_request_id, stage.value)
        return await self._update(booking_request_id, **_stage_fields(stage))

    async def list_active_bookings(
        self, caller_user_id: str, statuses: Iterable[str] | None = None
    ) -> list[BookingRequestOut]:
        wanted = [str(s) for s in (statuses or ACTIVE_STATUSES)]
        rows = await self._store_call(
            self._store.list_booking_requests, caller_user_id, wanted
        )
        return [BookingRequestOut.model_validate(row) for row in rows]

    # --- token payment protocol ---

    async def create_order(
        self, booking_request_id: str, room_id: str, caller_user_id: str
    ) -> PaymentOrder:
        booking = await self._load_owned(booking_request_id, caller_user_id, room_id)
        if booking.token_paid:
            raise Conflict("Token already paid")

        amount = booking.token_amount
        if amount is None:
            room = await self._store_call(self._store.get_room, room_id)
            if room is None:
                raise NotFound("Room not found")
            amount = room.price
        amount_minor = to_minor_units(amount)

        notes = {
            "booking_request_id": booking_request_id,
            "room_id": room_id,
            "user_id": caller_user_id,
            "payment_type": PAYMENT_TYPE,
        }
        receipt = f"tok_{booking_request_id[:16]}_{int(time.time() * 1000)}"

        try:
            order = await self._gateway.create_order(
                amount_minor, self._currency, notes, receipt=receipt
            )
        except GatewayUnavailable as exc:
            logger.error("Order creation failed for %s: %s", booking_request_id, exc.message)
            raise ServiceUnavailable("Payment service temporarily unavailable") from exc
        except GatewayRejected as exc:
            logger.error("Order creation rejected for %s: %s", booking_request_id, exc.message)
            raise BadGateway("Failed to create payment order") from exc

        try:
            await self._in_thread(
                self._store.update_booking_request,
                booking_request_id,
                token_required=True,
                token_paid=False,
                razorpay_order_id=order.order_id,
                **_stage_fields(BookingStage.token_pending),
            )
        except StoreError:
            # The order exists at the gateway, so the renter can still pay.
            logger.exception(
                "Failed to move booking request %s to token_pending", booking_request_id
            )

        logger.info(
            "Created order %s for booking request %s (%d %s)",
            order.order_id, booking_request_id, order.amount, order.currency,
        )
        return order

    async def verify_payment(
        self,
        booking_request_id: str,
        room_id: str,
        payment_id: str,
        order_id: str,
        signature: str,
        caller_user_id: str,
    ) -> None:
        if not payment_id or not order_id or not signature:
            raise BadRequest("Missing Razorpay verification fields")

        booking = await self._load_owned(booking_request_id, caller_user_id, room_id)
        if booking.token_paid:
            raise Conflict("Token already paid")

        if not verify_signature(order_id, payment_id, signature, self._key_secret):
            logger.warning("Invalid payment signature for booking request %s", booking_request_id)
            raise InvalidSignature("Invalid payment signature")

        try:
            payment = await self._gateway.fetch_payment(payment_id)
        except (GatewayUnavailable, GatewayRejected, PaymentNotFound) as exc:
            logger.error("Payment fetch failed for %s: %s", payment_id, exc)
            raise BadGateway("Failed to verify payment with gateway") from exc

        if payment.order_id != order_id:
            raise OrderMismatch("Payment does not match order")
        if not payment.is_successful:
            raise PaymentNotSuccessful(payment.status)

        try:
            locked = await self._in_thread(
                self._store.try_lock_room, room_id, booking_request_id
            )
        except StoreError as exc:
            logger.exception("Room lock failed for room %s", room_id)
            raise InternalError("Failed to lock the room") from exc

        if not locked:
            room = await self._store_call(self._store.get_room, room_id)
            if room is not None and room.locked_by == booking_request_id:
                # A concurrent submission for this same booking request holds the lock.
                logger.info(
                    "Duplicate verification of booking request %s ignored", booking_request_id
                )
                raise Conflict("Payment for this booking request is already being confirmed")
            logger.warning(
                "Room %s already taken; payment %s for booking request %s needs a refund",
                room_id, payment_id, booking_request_id,
            )
            raise RoomNoLongerAvailable("Room is no longer available")

        try:
            confirmed = await self._in_thread(
                self._store.update_booking_request,
                booking_request_id,
                token_paid=True,
                razorpay_order_id=order_id,
                razorpay_payment_id=payment_id,
                **_stage_fields(BookingStage.confirmed),
            )
            if confirmed is None:
                raise StoreError(f"Booking request {booking_request_id} disappeared")
        except StoreError as exc:
            logger.exception(
                "Failed to confirm booking request %s, releasing room %s",
                booking_request_id, room_id,
            )
            await self._release_room(room_id)
            raise InternalError("Failed to finalize booking after payment") from exc

        logger.info(
            "Booking request %s confirmed; room %s locked by payment %s",
            booking_request_id, room_id, payment_id,
        )

    async def _release_room(self, room_id: str) -> None:
        try:
            await self._in_thread(self._store.rollback_room_lock, room_id)
        except StoreError:
            logger.exception("Rollback of room %s lock failed", room_id)
