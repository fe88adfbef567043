import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.config import Settings
from app.exceptions.custom import ReservationError
from app.exceptions.handlers import reservation_error_handler
from app.routers.reservations import router as reservations_router
from app.services.identity import IdentityService
from app.services.razorpay import RazorpayService
from app.services.reservation import ReservationService
from app.store.database import create_db_engine, create_session_factory, init_db
from app.store.reservations import ReservationStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    store = ReservationStore(create_session_factory(engine))

    async with httpx.AsyncClient(timeout=settings.gateway_timeout) as client:
        razorpay = RazorpayService(
            client,
            settings.razorpay_key_id,
            settings.razorpay_key_secret,
            timeout=settings.gateway_timeout,
        )

        app.state.store = store
        app.state.identity_service = IdentityService(client, settings.identity_url)
        app.state.reservation_service = ReservationService(
            store,
            razorpay,
            settings.razorpay_key_secret,
            currency=settings.currency,
            minimum_stay_months=settings.minimum_stay_months,
        )

        yield

    engine.dispose()


app = FastAPI(title="Room Reservations", lifespan=lifespan)

app.add_exception_handler(ReservationError, reservation_error_handler)

app.include_router(reservations_router)
