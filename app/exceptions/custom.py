class GatewayUnavailable(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GatewayRejected(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PaymentNotFound(Exception):
    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        self.message = f"Payment {payment_id} not found"
        super().__init__(self.message)


class StoreError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SignatureConfigError(Exception):
    """Raised when the gateway secret is missing. Never caught by the service."""


class ReservationError(Exception):
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_content(self) -> dict:
        return {"success": False, "error": self.kind, "detail": self.message}


class Unauthorized(ReservationError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(ReservationError):
    kind = "forbidden"
    status_code = 403


class NotFound(ReservationError):
    kind = "not_found"
    status_code = 404


class BadRequest(ReservationError):
    kind = "bad_request"
    status_code = 400


class Conflict(ReservationError):
    kind = "conflict"
    status_code = 409


class InvalidSignature(ReservationError):
    kind = "invalid_signature"
    status_code = 400


class OrderMismatch(ReservationError):
    kind = "order_mismatch"
    status_code = 400


class PaymentNotSuccessful(ReservationError):
    kind = "payment_not_successful"
    status_code = 400

    def __init__(self, payment_status: str):
        self.payment_status = payment_status
        super().__init__(f"Payment not successful (status: {payment_status})")

    def to_content(self) -> dict:
        content = super().to_content()
        content["payment_status"] = self.payment_status
        return content


class RoomNoLongerAvailable(ReservationError):
    kind = "room_no_longer_available"
    status_code = 409


class ServiceUnavailable(ReservationError):
    kind = "service_unavailable"
    status_code = 503


class BadGateway(ReservationError):
    kind = "bad_gateway"
    status_code = 502


class InternalError(ReservationError):
    kind = "internal_error"
    status_code = 500


ERRORS_BY_KIND: dict[str, type[ReservationError]] = {
    cls.kind: cls
    for cls in (
        Unauthorized,
        Forbidden,
        NotFound,
        BadRequest,
        Conflict,
        InvalidSignature,
        OrderMismatch,
        RoomNoLongerAvailable,
        ServiceUnavailable,
        BadGateway,
        InternalError,
    )
}
