from datetime import date, timedelta
from decimal import Decimal

import respx
from httpx import AsyncClient, Response

from app.main import app
from app.services.razorpay import ORDERS_URL, PAYMENTS_URL
from app.services.signature import generate_signature

IDENTITY_URL = "https://auth.example.com/auth/v1/user"
KEY_SECRET = "test-secret"

TOKENS = {"tok-a": "renter-a", "tok-b": "renter-b"}


def _identity(request):
    token = request.headers.get("Authorization", "").removeprefix("Bearer ")
    user_id = TOKENS.get(token)
    if user_id is None:
        return Response(401, json={"msg": "invalid token"})
    return Response(200, json={"id": user_id, "email": f"{user_id}@example.com"})


def _mock_identity():
    respx.get(IDENTITY_URL).mock(side_effect=_identity)


def _auth(token: str = "tok-a") -> dict:
    return {"Authorization": f"Bearer {token}"}


def _add_room(price: str = "12000"):
    return app.state.store.add_room(owner_id="owner-1", price=Decimal(price), title="Room")


async def _pending_booking(client: AsyncClient, room_id: str, token: str = "tok-a") -> str:
    resp = await client.post("/booking-requests", json={"room_id": room_id}, headers=_auth(token))
    assert resp.status_code == 201
    booking_id = resp.json()["id"]

    resp = await client.patch(
        f"/booking-requests/{booking_id}/details",
        json={"user_type": "student", "user_details": "B.Tech", "stay_duration": 12},
        headers=_auth(token),
    )
    assert resp.status_code == 200
    assert resp.json()["stage"] == "token_pending"
    return booking_id


async def _create_order(client: AsyncClient, booking_id: str, room_id: str, order_id: str, token="tok-a"):
    respx.post(ORDERS_URL).mock(
        return_value=Response(200, json={"id": order_id, "amount": 1200000, "currency": "INR"})
    )
    resp = await client.post(
        f"/booking-requests/{booking_id}/order", json={"room_id": room_id}, headers=_auth(token)
    )
    assert resp.status_code == 200
    return resp.json()


def _verify_body(room_id: str, payment_id: str, order_id: str, signature: str | None = None) -> dict:
    return {
        "room_id": room_id,
        "razorpay_payment_id": payment_id,
        "razorpay_order_id": order_id,
        "razorpay_signature": signature or generate_signature(order_id, payment_id, KEY_SECRET),
    }


@respx.mock
async def test_missing_token_is_401(client: AsyncClient):
    _mock_identity()
    resp = await client.get("/booking-requests")

    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "unauthorized", "detail": "Unauthorized"}


@respx.mock
async def test_invalid_token_is_401(client: AsyncClient):
    _mock_identity()
    resp = await client.get("/booking-requests", headers=_auth("nope"))

    assert resp.status_code == 401
    assert resp.json()["error"] == "unauthorized"


@respx.mock
async def test_start_booking_unknown_room_is_404(client: AsyncClient):
    _mock_identity()
    resp = await client.post("/booking-requests", json={"room_id": "nope"}, headers=_auth())

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@respx.mock
async def test_full_flow(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id)

    drop = (date.today() + timedelta(days=3)).isoformat()
    resp = await client.patch(
        f"/booking-requests/{booking_id}/drop",
        json={"drop_date": drop, "drop_time": "10:30:00"},
        headers=_auth(),
    )
    assert resp.status_code == 200
    assert resp.json()["drop_date"] == drop

    order = await _create_order(client, booking_id, room.id, "order_1")
    assert order == {
        "success": True,
        "razorpay_order_id": "order_1",
        "razorpay_key_id": "rzp_test_key",
        "amount": 1200000,
        "currency": "INR",
    }

    respx.get(f"{PAYMENTS_URL}/pay_1").mock(
        return_value=Response(200, json={"id": "pay_1", "order_id": "order_1", "status": "captured"})
    )
    resp = await client.post(
        f"/booking-requests/{booking_id}/verify",
        json=_verify_body(room.id, "pay_1", "order_1"),
        headers=_auth(),
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    resp = await client.get(f"/booking-requests/{booking_id}", headers=_auth())
    body = resp.json()
    assert body["stage"] == "confirmed"
    assert body["status"] == "approved"
    assert body["token_paid"] is True
    assert app.state.store.get_room(room.id).available is False


@respx.mock
async def test_verify_invalid_signature(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id)
    await _create_order(client, booking_id, room.id, "order_1")

    resp = await client.post(
        f"/booking-requests/{booking_id}/verify",
        json=_verify_body(room.id, "pay_1", "order_1", signature="0" * 64),
        headers=_auth(),
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_signature"
    assert app.state.store.get_room(room.id).available is True


@respx.mock
async def test_verify_unsuccessful_payment_reports_status(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id)
    await _create_order(client, booking_id, room.id, "order_1")
    respx.get(f"{PAYMENTS_URL}/pay_1").mock(
        return_value=Response(200, json={"id": "pay_1", "order_id": "order_1", "status": "failed"})
    )

    resp = await client.post(
        f"/booking-requests/{booking_id}/verify",
        json=_verify_body(room.id, "pay_1", "order_1"),
        headers=_auth(),
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "payment_not_successful"
    assert body["payment_status"] == "failed"


@respx.mock
async def test_second_payer_gets_room_no_longer_available(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    first = await _pending_booking(client, room.id, "tok-a")
    second = await _pending_booking(client, room.id, "tok-b")
    await _create_order(client, first, room.id, "order_a", "tok-a")
    await _create_order(client, second, room.id, "order_b", "tok-b")
    respx.get(f"{PAYMENTS_URL}/pay_a").mock(
        return_value=Response(200, json={"id": "pay_a", "order_id": "order_a", "status": "captured"})
    )
    respx.get(f"{PAYMENTS_URL}/pay_b").mock(
        return_value=Response(200, json={"id": "pay_b", "order_id": "order_b", "status": "captured"})
    )

    resp_a = await client.post(
        f"/booking-requests/{first}/verify", json=_verify_body(room.id, "pay_a", "order_a"), headers=_auth("tok-a")
    )
    resp_b = await client.post(
        f"/booking-requests/{second}/verify", json=_verify_body(room.id, "pay_b", "order_b"), headers=_auth("tok-b")
    )

    assert resp_a.status_code == 200
    assert resp_b.status_code == 409
    assert resp_b.json()["error"] == "room_no_longer_available"


@respx.mock
async def test_other_renter_cannot_read_booking(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id, "tok-a")

    resp = await client.get(f"/booking-requests/{booking_id}", headers=_auth("tok-b"))

    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


@respx.mock
async def test_order_gateway_outage_is_503(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id)
    respx.post(ORDERS_URL).mock(return_value=Response(500, text="boom"))

    resp = await client.post(
        f"/booking-requests/{booking_id}/order", json={"room_id": room.id}, headers=_auth()
    )

    assert resp.status_code == 503
    assert resp.json()["error"] == "service_unavailable"


@respx.mock
async def test_outcome_and_list_filter(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    cancelled = await _pending_booking(client, room.id)
    pending = await _pending_booking(client, room.id)

    resp = await client.post(
        f"/booking-requests/{cancelled}/outcome",
        json={"outcome": "cancelled", "reason": "closed the checkout"},
        headers=_auth(),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "payment_cancelled"

    resp = await client.get(
        "/booking-requests", params={"status": "payment_cancelled"}, headers=_auth()
    )
    assert [b["id"] for b in resp.json()] == [cancelled]

    resp = await client.get("/booking-requests", headers=_auth())
    assert {b["id"] for b in resp.json()} == {cancelled, pending}

    resp = await client.get("/booking-requests", headers=_auth("tok-b"))
    assert resp.json() == []


@respx.mock
async def test_invalid_body_is_422(client: AsyncClient):
    _mock_identity()
    room = _add_room()
    booking_id = await _pending_booking(client, room.id)

    resp = await client.patch(
        f"/booking-requests/{booking_id}/details",
        json={"user_type": "astronaut", "user_details": "x", "stay_duration": 12},
        headers=_auth(),
    )

    assert resp.status_code == 422
