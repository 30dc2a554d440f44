"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at SQLite before tourshop loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")
os.environ.setdefault("MAIL_BACKEND", "console")

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tourshop.core.config import settings  # noqa: E402
from tourshop.core.database import Base, get_db  # noqa: E402
from tourshop.core.exceptions import PaymentDeclinedError, PaymentGatewayError  # noqa: E402
from tourshop.models import *  # noqa: E402,F403 - Import all models
from tourshop.models.tour import TripExtraType  # noqa: E402
from tourshop.payments.base import CAPTURE_COMPLETED, CaptureResult, PaymentGateway  # noqa: E402
from tourshop.schemas.checkout import CheckoutStep  # noqa: E402
from tourshop.schemas.departure import CreateDepartureRequest  # noqa: E402
from tourshop.schemas.room_option import CreateRoomOptionRequest  # noqa: E402
from tourshop.schemas.tour import CreateTourRequest, TripExtraInput  # noqa: E402
from tourshop.services.checkout_service import CheckoutService  # noqa: E402
from tourshop.services.departure_service import DepartureService  # noqa: E402
from tourshop.services.notification_service import NotificationService  # noqa: E402
from tourshop.services.room_option_service import RoomOptionService  # noqa: E402
from tourshop.services.tour_service import TourService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CUSTOMER_REF = "customer-1"


class FakeGateway(PaymentGateway):
    """In-memory payment processor; set ``create_error`` or ``capture_error`` to make calls fail."""

    name = "fake"

    def __init__(self):
        self.orders: dict[str, tuple[int, str, str]] = {}
        self.captured: list[str] = []
        self.create_error: Exception | None = None
        self.capture_error: Exception | None = None
        self.capture_status = CAPTURE_COMPLETED
        # Awaited with the order id while a capture call is in flight
        self.during_capture = None

    async def create_order(self, amount: int, currency: str, reference: str) -> str:
        if self.create_error:
            raise self.create_error
        order_id = f"ORDER-{len(self.orders) + 1:04d}"
        self.orders[order_id] = (amount, currency, reference)
        return order_id

    async def capture_order(self, order_id: str) -> CaptureResult:
        if self.during_capture:
            await self.during_capture(order_id)
        if self.capture_error:
            raise self.capture_error
        amount, currency, _ = self.orders[order_id]
        self.captured.append(order_id)
        return CaptureResult(
            status=self.capture_status,
            capture_id=f"CAPTURE-{order_id}",
            amount=amount,
            currency=currency,
        )


def make_token(sub: str = CUSTOMER_REF, roles: list[str] | None = None, **claims) -> str:
    """Bearer token signed with the test secret."""
    payload = {"sub": sub, "roles": roles or [], **claims}
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def traveller_data(first_name: str, last_name: str, email: str, is_lead_guest: bool = False) -> dict:
    return {
        "title": "Ms",
        "first_name": first_name,
        "last_name": last_name,
        "date_of_birth": "1986-04-12",
        "email": email,
        "phone": "+64 21 555 0101",
        "nationality": "New Zealander",
        "address": "12 Queen Street, Auckland",
        "is_lead_guest": is_lead_guest,
    }


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine, configured like the application's."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifications():
    """Console mail backend; sent messages land in ``outbox``."""
    return NotificationService(backend="console")


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, gateway, notifications):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from tourshop.core.dependencies import get_notification_service, get_payment_gateway
    from tourshop.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        validation_exception_handler,
    )
    from tourshop.routers import admin, checkout, currency, departure, health, metrics, payment, room_option, tour

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Tour Shop API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register API routers
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(tour.router)
    app.include_router(departure.router)
    app.include_router(room_option.router)
    app.include_router(checkout.router)
    app.include_router(payment.router)
    app.include_router(admin.router)
    app.include_router(currency.router)

    # Override database and outbound dependencies
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notification_service] = lambda: notifications

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def customer_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin-1', roles=['admin'])}"}


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return {
        "code": "SIE12",
        "slug": "south-island-explorer",
        "title": "South Island Explorer",
        "start_location": "Christchurch",
        "end_location": "Queenstown",
        "duration_days": 12,
        "max_group_size": 16,
        "price_from": 150000,
        "currency": "NZD",
        "overview": "Glaciers, fiords and alpine passes",
        "trip_extras": [
            {"type": "KITTY", "name": "Group kitty", "price": 5000},
            {"type": "OPTIONAL_ACTIVITY", "name": "Milford Sound cruise", "price": 12000},
            {"type": "OTHER", "name": "Welcome pack"},
        ],
    }


@pytest_asyncio.fixture
async def sample_tour(test_session, sample_tour_data):
    request = CreateTourRequest(
        **{k: v for k, v in sample_tour_data.items() if k != "trip_extras"},
        trip_extras=[TripExtraInput(**extra) for extra in sample_tour_data["trip_extras"]],
    )
    return await TourService(test_session).create_tour(request)


@pytest_asyncio.fixture
async def sample_departure(test_session, sample_tour):
    return await DepartureService(test_session).create_departure(CreateDepartureRequest(
        tour_id=str(sample_tour.id),
        departure_date="2027-02-01",
        end_date="2027-02-12",
        available_spaces=10,
    ))


@pytest_asyncio.fixture
async def twin_room(test_session, sample_tour):
    return await RoomOptionService(test_session).create_room_option(CreateRoomOptionRequest(
        tour_id=str(sample_tour.id),
        room_type="Twin Share",
        price_add=0,
        is_default=True,
    ))


@pytest_asyncio.fixture
async def single_room(test_session, sample_tour):
    return await RoomOptionService(test_session).create_room_option(CreateRoomOptionRequest(
        tour_id=str(sample_tour.id),
        room_type="Single Room",
        price_add=30000,
    ))


def extra_id(tour, extra_type: TripExtraType) -> str:
    return next(str(extra.id) for extra in tour.trip_extras if extra.type == extra_type)


@pytest.fixture
def step_payloads(sample_tour, sample_departure, twin_room):
    """Valid form data for each wizard step: two travellers, one activity, a donation."""
    return {
        1: {"departure_id": str(sample_departure.id), "number_of_travelers": 2},
        2: {"room_option_id": str(twin_room.id), "roommates": ["Jordan Lee", "Casey Lee"]},
        3: {
            "travelers": [
                traveller_data("Casey", "Lee", "casey@example.com", is_lead_guest=True),
                traveller_data("Jordan", "Lee", "jordan@example.com"),
            ],
            "emergency_contact": {"name": "Robin Lee", "phone": "+64 21 555 0199", "relationship": "Sibling"},
            "special_requests": "Vegetarian meals",
        },
        4: {
            "add_ons": [{"id": extra_id(sample_tour, TripExtraType.OPTIONAL_ACTIVITY), "quantity": 1}],
            "insurance_required": False,
            "donation": 1000,
        },
        5: {"payment_type": "FULL_PAYMENT", "agree_terms": True, "read_guidelines": True},
    }


@pytest.fixture
def ready_checkout(test_session, sample_tour, step_payloads):
    """Factory completing every wizard step; pass ``payment_type`` to switch schedules."""
    async def _complete(customer_ref: str = CUSTOMER_REF, payment_type: str = "FULL_PAYMENT"):
        service = CheckoutService(test_session)
        session = await service.start_checkout(customer_ref, str(sample_tour.id))
        for step, data in step_payloads.items():
            if step == 5:
                data = {**data, "payment_type": payment_type}
            session = await service.submit_step(str(session.id), customer_ref, CheckoutStep(step), data)
        return session

    return _complete


@pytest.fixture
def declined():
    return PaymentDeclinedError(order_id="ORDER-0001", reason="INSTRUMENT_DECLINED")


@pytest.fixture
def gateway_down():
    return PaymentGatewayError("create_order", "connection refused")


@pytest.fixture
def pending_booking(test_session, ready_checkout, gateway):
    """Factory placing an order through the fake gateway; returns the PENDING booking."""
    from tourshop.services.payment_service import PaymentService

    async def _place(customer_ref: str = CUSTOMER_REF, payment_type: str = "FULL_PAYMENT"):
        session = await ready_checkout(customer_ref=customer_ref, payment_type=payment_type)
        created = await PaymentService(test_session, gateway).create_order(str(session.id), customer_ref)
        return created.booking

    return _place
