import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.exceptions.custom import StoreError
from app.store.models import BookingRequest, Room

logger = logging.getLogger(__name__)


class ReservationStore:
    """Persistence for rooms and booking requests.

    Synchronous; callers on the event loop go through ``asyncio.to_thread``.
    Every public method opens and commits its own session.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Store operation failed: %s", exc)
            raise StoreError(str(exc)) from exc
        finally:
            session.close()

    # --- rooms ---

    def add_room(
        self,
        owner_id: str,
        price: Decimal,
        title: str | None = None,
        room_id: str | None = None,
        available: bool = True,
    ) -> Room:
        room = Room(owner_id=owner_id, price=price, title=title, available=available)
        if room_id:
            room.id = room_id
        with self._session() as session:
            session.add(room)
            session.flush()
        return room

    def get_room(self, room_id: str) -> Room | None:
        with self._session() as session:
            return session.get(Room, room_id)

    def try_lock_room(self, room_id: str, booking_request_id: str | None = None) -> bool:
        """Lock the room iff it is still available. One conditional UPDATE.

        Exactly one of any number of concurrent callers gets True. The winner's
        booking request id is recorded in ``locked_by``.
        """
        stmt = (
            update(Room)
            .where(Room.id == room_id, Room.available.is_(True))
            .values(available=False, booking=True, locked_by=booking_request_id)
        )
        with self._session() as session:
            result = session.execute(stmt)
            locked = result.rowcount == 1
        logger.info("Lock attempt on room %s: %s", room_id, "won" if locked else "lost")
        return locked

    def rollback_room_lock(self, room_id: str) -> None:
        stmt = (
            update(Room)
            .where(Room.id == room_id)
            .values(available=True, booking=False, locked_by=None)
        )
        with self._session() as session:
            session.execute(stmt)
        logger.warning("Rolled back lock on room %s", room_id)

    # --- booking requests ---

    def create_booking_request(
        self, room_id: str, user_id: str, token_amount: Decimal | None
    ) -> BookingRequest:
        booking = BookingRequest(
            room_id=room_id,
            user_id=user_id,
            token_amount=token_amount,
        )
        with self._session() as session:
            session.add(booking)
            session.flush()
            session.refresh(booking)
        return booking

    def get_booking_request(self, booking_request_id: str) -> BookingRequest | None:
        with self._session() as session:
            return session.get(BookingRequest, booking_request_id)

    def update_booking_request(
        self, booking_request_id: str, **fields
    ) -> BookingRequest | None:
        """Last-writer-wins field update. Returns the fresh row, or None if absent."""
        stmt = (
            update(BookingRequest)
            .where(BookingRequest.id == booking_request_id)
            .values(**fields)
        )
        with self._session() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                return None
            return session.get(BookingRequest, booking_request_id, populate_existing=True)

    def list_booking_requests(
        self, user_id: str, statuses: Iterable[str] | None = None
    ) -> list[BookingRequest]:
        stmt = select(BookingRequest).where(BookingRequest.user_id == user_id)
        if statuses is not None:
            stmt = stmt.where(BookingRequest.status.in_([str(s) for s in statuses]))
        stmt = stmt.order_by(BookingRequest.created_at.desc())
        with self._session() as session:
            return list(session.scalars(stmt))
