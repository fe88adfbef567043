import logging

from fastapi import APIRouter, Query

from app.dependencies import CallerDep, ReservationDep
from app.schemas.booking import (
    BookingRequestOut,
    BookingStatus,
    CreateOrderRequest,
    CreateOrderResponse,
    DetailsRequest,
    DropScheduleRequest,
    PaymentOutcomeRequest,
    StartBookingRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking-requests", tags=["booking-requests"])


@router.post("", response_model=BookingRequestOut, status_code=201)
async def start_booking(
    request: StartBookingRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> BookingRequestOut:
    return await service.start_booking(request.room_id, caller)


@router.get("", response_model=list[BookingRequestOut])
async def list_active_bookings(
    service: ReservationDep,
    caller: CallerDep,
    status: list[BookingStatus] | None = Query(default=None),
) -> list[BookingRequestOut]:
    return await service.list_active_bookings(caller, status)


@router.get("/{booking_request_id}", response_model=BookingRequestOut)
async def get_booking(
    booking_request_id: str,
    service: ReservationDep,
    caller: CallerDep,
) -> BookingRequestOut:
    return await service.get_booking(booking_request_id, caller)


@router.patch("/{booking_request_id}/details", response_model=BookingRequestOut)
async def update_details(
    booking_request_id: str,
    request: DetailsRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> BookingRequestOut:
    return await service.update_details(
        booking_request_id,
        caller,
        request.user_type,
        request.user_details,
        request.stay_duration,
    )


@router.patch("/{booking_request_id}/drop", response_model=BookingRequestOut)
async def schedule_drop(
    booking_request_id: str,
    request: DropScheduleRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> BookingRequestOut:
    return await service.schedule_drop(
        booking_request_id, caller, request.drop_date, request.drop_time
    )


@router.post("/{booking_request_id}/order", response_model=CreateOrderResponse)
async def create_order(
    booking_request_id: str,
    request: CreateOrderRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> CreateOrderResponse:
    order = await service.create_order(booking_request_id, request.room_id, caller)
    return CreateOrderResponse(
        razorpay_order_id=order.order_id,
        razorpay_key_id=order.key_id,
        amount=order.amount,
        currency=order.currency,
    )


@router.post("/{booking_request_id}/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    booking_request_id: str,
    request: VerifyPaymentRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> VerifyPaymentResponse:
    await service.verify_payment(
        booking_request_id,
        request.room_id,
        request.razorpay_payment_id,
        request.razorpay_order_id,
        request.razorpay_signature,
        caller,
    )
    return VerifyPaymentResponse()


@router.post("/{booking_request_id}/outcome", response_model=BookingRequestOut)
async def record_payment_outcome(
    booking_request_id: str,
    request: PaymentOutcomeRequest,
    service: ReservationDep,
    caller: CallerDep,
) -> BookingRequestOut:
    if request.reason:
        logger.info(
            "Payment %s for %s: %s", request.outcome, booking_request_id, request.reason
        )
    return await service.record_payment_outcome(
        booking_request_id, caller, request.outcome
    )
