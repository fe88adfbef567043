import logging

import httpx

from app.exceptions.custom import GatewayRejected, GatewayUnavailable, PaymentNotFound
from app.schemas.razorpay import PaymentOrder, PaymentRecord

logger = logging.getLogger(__name__)

ORDERS_URL = "https://api.razorpay.com/v1/orders"
PAYMENTS_URL = "https://api.razorpay.com/v1/payments"

_DEFAULT_TIMEOUT = 15.0


class RazorpayService:
    """Thin adapter over the Razorpay orders/payments API. Never retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        key_id: str,
        key_secret: str,
        timeout: float = _DEFAULT_TIMEOUT,
    ):
        self._client = client
        self._key_id = key_id
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self._timeout = timeout

    @property
    def key_id(self) -> str:
        return self._key_id

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, url, auth=self._auth, timeout=self._timeout, **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.warning("Razorpay %s %s timed out", method, url)
            raise GatewayUnavailable(f"Razorpay timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("Razorpay %s %s transport error: %s", method, url, exc)
            raise GatewayUnavailable(f"Razorpay unreachable: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            logger.error(
                "Razorpay %s %s returned %d", method, url, resp.status_code
            )
            raise GatewayUnavailable(resp.text, status_code=resp.status_code)
        return resp

    async def create_order(
        self,
        amount: int,
        currency: str,
        notes: dict[str, str],
        receipt: str | None = None,
    ) -> PaymentOrder:
        payload: dict = {
            "amount": amount,
            "currency": currency,
            "payment_capture": 1,
            "notes": notes,
        }
        if receipt:
            payload["receipt"] = receipt

        resp = await self._request("POST", ORDERS_URL, json=payload)
        if resp.status_code >= 400:
            logger.error(
                "Razorpay order creation rejected: %d %s", resp.status_code, resp.text
            )
            raise GatewayRejected(resp.text, status_code=resp.status_code)

        try:
            data = _json_object(resp)
            order = PaymentOrder(
                order_id=data["id"],
                key_id=self._key_id,
                amount=data.get("amount", amount),
                currency=data.get("currency", currency),
                receipt=data.get("receipt"),
                status=data.get("status"),
                notes=data.get("notes") or {},
            )
        except (ValueError, KeyError) as exc:
            # ValueError also covers a non-JSON body and pydantic validation errors.
            logger.error("Unreadable Razorpay order response: %s", resp.text[:200])
            raise GatewayRejected(
                "Malformed order response from Razorpay", status_code=resp.status_code
            ) from exc

        logger.info("Created Razorpay order %s for %d %s", order.order_id, amount, currency)
        return order

    async def fetch_payment(self, payment_id: str) -> PaymentRecord:
        resp = await self._request("GET", f"{PAYMENTS_URL}/{payment_id}")

        if resp.status_code == 404 or (
            resp.status_code == 400 and "does not exist" in resp.text
        ):
            raise PaymentNotFound(payment_id)
        if resp.status_code >= 400:
            raise GatewayRejected(resp.text, status_code=resp.status_code)

        try:
            data = _json_object(resp)
            return PaymentRecord(
                id=data["id"],
                status=data.get("status", ""),
                order_id=data.get("order_id"),
                amount=data.get("amount"),
                currency=data.get("currency"),
                method=data.get("method"),
                error_description=data.get("error_description"),
            )
        except (ValueError, KeyError) as exc:
            logger.error("Unreadable Razorpay payment %s response: %s", payment_id, resp.text[:200])
            raise GatewayRejected(
                "Malformed payment response from Razorpay", status_code=resp.status_code
            ) from exc


def _json_object(resp: httpx.Response) -> dict:
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
