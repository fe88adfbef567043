from decimal import Decimal

import httpx
import pytest
from httpx import ASGITransport

from app.services.razorpay import RazorpayService
from app.services.reservation import ReservationService
from app.store.database import create_db_engine, create_session_factory, init_db
from app.store.reservations import ReservationStore

KEY_ID = "rzp_test_key"
KEY_SECRET = "test-secret"
IDENTITY_URL = "https://auth.example.com/auth/v1/user"


@pytest.fixture
def database_url(tmp_path):
    # File-backed so concurrent lock attempts hit a real database lock.
    return f"sqlite:///{tmp_path / 'reservations.db'}"


@pytest.fixture
def store(database_url):
    engine = create_db_engine(database_url)
    init_db(engine)
    yield ReservationStore(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def room(store):
    return store.add_room(
        owner_id="owner-1", price=Decimal("12000"), title="Sunny room near campus"
    )


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as c:
        yield c


@pytest.fixture
def service(store, http_client) -> ReservationService:
    gateway = RazorpayService(http_client, KEY_ID, KEY_SECRET)
    return ReservationService(store, gateway, KEY_SECRET)


@pytest.fixture
def mock_env(monkeypatch, database_url):
    monkeypatch.setenv("RAZORPAY_KEY_ID", KEY_ID)
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", KEY_SECRET)
    monkeypatch.setenv("IDENTITY_URL", IDENTITY_URL)
    monkeypatch.setenv("DATABASE_URL", database_url)


@pytest.fixture
async def client(mock_env):
    from app.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
