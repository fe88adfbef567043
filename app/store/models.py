import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, Numeric, String, Text, Time

from app.schemas.booking import BookingStage, BookingStatus
from app.store.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200))
    price = Column(Numeric(10, 2), nullable=False)
    # Only ever flipped by ReservationStore.try_lock_room / rollback_room_lock.
    available = Column(Boolean, nullable=False, default=True)
    booking = Column(Boolean, nullable=False, default=False)
    # Booking request holding the lock; cleared on rollback.
    locked_by = Column(String(36))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class BookingRequest(Base):
    __tablename__ = "booking_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    room_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    user_type = Column(String(32))
    user_details = Column(Text)
    stay_duration = Column(Integer)

    stage = Column(String(32), nullable=False, default=BookingStage.initiated.value)
    status = Column(String(32), nullable=False, default=BookingStatus.initiated.value, index=True)
    token_required = Column(Boolean, nullable=False, default=False)
    token_paid = Column(Boolean, nullable=False, default=False)
    token_amount = Column(Numeric(10, 2))

    drop_date = Column(Date)
    drop_time = Column(Time)

    razorpay_order_id = Column(String(64))
    razorpay_payment_id = Column(String(64))

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
