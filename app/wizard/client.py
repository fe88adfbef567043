import logging
from datetime import date, time

import httpx

from app.exceptions.custom import (
    ERRORS_BY_KIND,
    InternalError,
    PaymentNotSuccessful,
    ReservationError,
    ServiceUnavailable,
)
from app.schemas.booking import BookingRequestOut, BookingStatus, PaymentOutcome, UserType
from app.schemas.razorpay import PaymentOrder

logger = logging.getLogger(__name__)


def error_from_response(resp: httpx.Response) -> ReservationError:
    try:
        data = resp.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    kind = data.get("error")
    detail = data.get("detail")
    if not isinstance(detail, str):
        detail = resp.text

    if kind == PaymentNotSuccessful.kind:
        return PaymentNotSuccessful(data.get("payment_status") or "unknown")
    error_cls = ERRORS_BY_KIND.get(kind)
    if error_cls is None:
        error_cls = InternalError if resp.status_code >= 500 else ERRORS_BY_KIND["bad_request"]
    return error_cls(detail)


class ReservationApiClient:
    """Reservation backend over HTTP, for wizards running outside the service.

    The caller id arguments exist to match the in-process service; the server
    derives the caller from the bearer token.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, access_token: str):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self._base_url}/booking-requests{path}"
        try:
            resp = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Reservation API %s %s failed: %s", method, path, exc)
            raise ServiceUnavailable("Reservation service unreachable") from exc

        if resp.status_code >= 400:
            raise error_from_response(resp)
        return resp

    async def start_booking(self, room_id: str, caller_user_id: str) -> BookingRequestOut:
        resp = await self._send("POST", "", json={"room_id": room_id})
        return BookingRequestOut(**resp.json())

    async def get_booking(self, booking_request_id: str, caller_user_id: str) -> BookingRequestOut:
        resp = await self._send("GET", f"/{booking_request_id}")
        return BookingRequestOut(**resp.json())

    async def list_active_bookings(
        self, caller_user_id: str, statuses: list[BookingStatus] | None = None
    ) -> list[BookingRequestOut]:
        params = [("status", str(s)) for s in statuses] if statuses else None
        resp = await self._send("GET", "", params=params)
        return [BookingRequestOut(**item) for item in resp.json()]

    async def update_details(
        self,
        booking_request_id: str,
        caller_user_id: str,
        user_type: UserType,
        user_details: str,
        stay_duration: int,
    ) -> BookingRequestOut:
        resp = await self._send(
            "PATCH",
            f"/{booking_request_id}/details",
            json={
                "user_type": str(user_type),
                "user_details": user_details,
                "stay_duration": stay_duration,
            },
        )
        return BookingRequestOut(**resp.json())

    async def schedule_drop(
        self,
        booking_request_id: str,
        caller_user_id: str,
        drop_date: date,
        drop_time: time | None = None,
    ) -> BookingRequestOut:
        payload = {
            "drop_date": drop_date.isoformat(),
            "drop_time": drop_time.isoformat() if drop_time else None,
        }
        resp = await self._send("PATCH", f"/{booking_request_id}/drop", json=payload)
        return BookingRequestOut(**resp.json())

    async def create_order(
        self, booking_request_id: str, room_id: str, caller_user_id: str
    ) -> PaymentOrder:
        resp = await self._send(
            "POST", f"/{booking_request_id}/order", json={"room_id": room_id}
        )
        data = resp.json()
        return PaymentOrder(
            order_id=data["razorpay_order_id"],
            key_id=data["razorpay_key_id"],
            amount=data["amount"],
            currency=data["currency"],
        )

    async def verify_payment(
        self,
        booking_request_id: str,
        room_id: str,
        payment_id: str,
        order_id: str,
        signature: str,
        caller_user_id: str,
    ) -> None:
        await self._send(
            "POST",
            f"/{booking_request_id}/verify",
            json={
                "room_id": room_id,
                "razorpay_payment_id": payment_id,
                "razorpay_order_id": order_id,
                "razorpay_signature": signature,
            },
        )

    async def record_payment_outcome(
        self,
        booking_request_id: str,
        caller_user_id: str,
        outcome: PaymentOutcome,
    ) -> BookingRequestOut:
        resp = await self._send(
            "POST", f"/{booking_request_id}/outcome", json={"outcome": str(outcome)}
        )
        return BookingRequestOut(**resp.json())
