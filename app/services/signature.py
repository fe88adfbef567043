"""HMAC verification of gateway payment callbacks.

The gateway signs ``"{order_id}|{payment_id}"`` with the merchant key secret using
HMAC-SHA256 and hands the hex digest to the client. A callback is genuine only if
the digest recomputed here matches.
"""

import hashlib
import hmac

from app.exceptions.custom import SignatureConfigError


def generate_signature(order_id: str, payment_id: str, secret: str) -> str:
    if not secret:
        raise SignatureConfigError("Gateway key secret is not configured")
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    order_id: str | None,
    payment_id: str | None,
    claimed_signature: str | None,
    secret: str,
) -> bool:
    """Return True only if ``claimed_signature`` was issued for this order/payment.

    Malformed input is a mismatch, not an error. Raises SignatureConfigError
    when ``secret`` is empty.
    """
    if not secret:
        raise SignatureConfigError("Gateway key secret is not configured")

    for value in (order_id, payment_id, claimed_signature):
        if not isinstance(value, str) or not value:
            return False
    if not claimed_signature.isascii():
        return False

    expected = generate_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, claimed_signature)
