"""Pytest configuration: in-memory database, factories and an HTTP client."""

import os

# Set test database URL BEFORE any imports from society_portal
# so the module-level engine never touches a file database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from society_portal.config import Settings, get_settings  # noqa: E402
from society_portal.errors import GatewayError  # noqa: E402
from society_portal.main import create_app  # noqa: E402
from society_portal.models import Base  # noqa: E402
from society_portal.models.payment import PaymentRecord  # noqa: E402
from society_portal.models.resident import ApprovalState, Resident  # noqa: E402
from society_portal.models.society import Society  # noqa: E402
from society_portal.services import get_async_session  # noqa: E402
from society_portal.services.gateway import OrderHandle, PaymentGateway  # noqa: E402
from society_portal.services.identity import hash_password  # noqa: E402

GATEWAY_SECRET = "s3cret"
PASSWORD = "correct-horse-battery"
FEE_SCHEDULE = {"societyCharges": 500, "waterCharges": 100}

# bcrypt is deliberately slow; hash once for all fixture residents
PASSWORD_HASH = hash_password(PASSWORD)


class FakeGateway(PaymentGateway):
    """In-memory gateway recording every order request."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.orders: list[dict] = []

    async def create_order(self, amount_minor, currency, receipt, notes=None):
        if self.fail:
            raise GatewayError("Gateway unavailable")
        self.orders.append(
            {"amount": amount_minor, "currency": currency, "receipt": receipt, "notes": notes}
        )
        return OrderHandle(
            order_id=f"order_{len(self.orders)}",
            amount=amount_minor,
            currency=currency,
            receipt=receipt,
        )


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_society(session):
    """Factory for persisted societies."""

    async def _make(name: str = "Green Meadows", fee_schedule: dict | None = None, **kwargs):
        society = Society(
            name=name,
            fee_schedule=dict(FEE_SCHEDULE) if fee_schedule is None else fee_schedule,
            **kwargs,
        )
        session.add(society)
        await session.commit()
        return society

    return _make


@pytest.fixture
def make_resident(session):
    """Factory for persisted residents (approved by default)."""
    counter = {"n": 0}

    async def _make(
        society: Society,
        unit_id: str | None = None,
        approval_state: ApprovalState = ApprovalState.APPROVED,
        is_admin: bool = False,
        created_at: datetime | None = None,
        username: str | None = None,
    ) -> Resident:
        counter["n"] += 1
        resident = Resident(
            username=username or f"resident{counter['n']}@example.com",
            password_hash=PASSWORD_HASH,
            society_id=society.id,
            unit_id=unit_id or f"A-{100 + counter['n']}",
            first_name="Asha",
            last_name=f"Rao{counter['n']}",
            approval_state=approval_state,
            is_admin=is_admin,
            created_at=created_at or datetime.now(timezone.utc),
            payments=[],
        )
        session.add(resident)
        await session.commit()
        return resident

    return _make


@pytest.fixture
def add_payment(session):
    """Append a settled payment to a resident's ledger."""

    async def _add(resident: Resident, paid_at: datetime, amount="600.00", invoice_id=None):
        record = PaymentRecord(
            resident_id=resident.id,
            paid_at=paid_at,
            amount=Decimal(amount),
            invoice_id=invoice_id or f"order_seed_{paid_at:%Y%m%d%H%M%S}",
            payment_id="pay_seed",
        )
        resident.payments.append(record)
        session.add(record)
        await session.commit()
        return record

    return _add


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=GATEWAY_SECRET,
        session_secret="test-session-secret",
        locale="en_IN",
        timezone="Asia/Kolkata",
    )


@pytest.fixture
def app(session, fake_gateway, test_settings):
    """Application wired to the test session, fake gateway and test settings."""
    app = create_app(settings=test_settings, gateway=fake_gateway)

    async def override_session():
        yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_settings] = lambda: test_settings
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def login_as(client):
    """Log the HTTP client in as the given resident."""

    async def _login(resident: Resident):
        response = await client.post(
            "/login", json={"username": resident.username, "password": PASSWORD}
        )
        assert response.status_code == 200, response.text
        return response

    return _login
