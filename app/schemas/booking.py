from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class BookingStage(StrEnum):
    initiated = "initiated"
    not_eligible = "not_eligible"
    token_pending = "token_pending"
    payment_failed = "payment_failed"
    payment_cancelled = "payment_cancelled"
    confirmed = "confirmed"


class BookingStatus(StrEnum):
    initiated = "initiated"
    not_eligible = "not_eligible"
    payment_failed = "payment_failed"
    payment_cancelled = "payment_cancelled"
    approved = "approved"


class UserType(StrEnum):
    student = "student"
    professional = "professional"


class PaymentOutcome(StrEnum):
    failed = "failed"
    cancelled = "cancelled"


# Coarse status shown to dashboards, derived from the protocol stage.
STAGE_STATUS: dict[BookingStage, BookingStatus] = {
    BookingStage.initiated: BookingStatus.initiated,
    BookingStage.not_eligible: BookingStatus.not_eligible,
    BookingStage.token_pending: BookingStatus.initiated,
    BookingStage.payment_failed: BookingStatus.payment_failed,
    BookingStage.payment_cancelled: BookingStatus.payment_cancelled,
    BookingStage.confirmed: BookingStatus.approved,
}

# Stages from which a drop may be scheduled or a new order created.
PAYABLE_STAGES = {
    BookingStage.token_pending,
    BookingStage.payment_failed,
    BookingStage.payment_cancelled,
}

ACTIVE_STATUSES = (
    BookingStatus.initiated,
    BookingStatus.approved,
    BookingStatus.payment_failed,
    BookingStatus.payment_cancelled,
)


class BookingRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    user_id: str
    user_type: UserType | None = None
    user_details: str | None = None
    stay_duration: int | None = None
    stage: BookingStage
    status: BookingStatus
    token_required: bool
    token_paid: bool
    token_amount: Decimal | None = None
    drop_date: date | None = None
    drop_time: time | None = None
    razorpay_order_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StartBookingRequest(BaseModel):
    room_id: str


class DetailsRequest(BaseModel):
    user_type: UserType
    user_details: str = Field(min_length=1)
    stay_duration: int = Field(gt=0)


class DropScheduleRequest(BaseModel):
    drop_date: date
    drop_time: time | None = None


class CreateOrderRequest(BaseModel):
    room_id: str


class CreateOrderResponse(BaseModel):
    success: bool = True
    razorpay_order_id: str
    razorpay_key_id: str
    amount: int
    currency: str


class VerifyPaymentRequest(BaseModel):
    room_id: str
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


class VerifyPaymentResponse(BaseModel):
    success: bool = True


class PaymentOutcomeRequest(BaseModel):
    outcome: PaymentOutcome
    reason: str | None = None
