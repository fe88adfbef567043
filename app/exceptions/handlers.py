import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import ReservationError

logger = logging.getLogger(__name__)


async def reservation_error_handler(_request: Request, exc: ReservationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Reservation error: %s (kind=%s)", exc.message, exc.kind)
    else:
        logger.warning("Reservation error: %s (kind=%s)", exc.message, exc.kind)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
    )
