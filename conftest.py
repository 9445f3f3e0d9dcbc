import asyncio
import os
import uuid
from datetime import date
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

# Optional overrides for local runs (e.g. a Postgres DATABASE_URL).
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from libs.auth.passwords import BcryptPasswordHasher
from libs.common.config import Settings, get_settings
from libs.db.config import create_engine_from_url
from services.courts_service.app.main import create_app
from services.courts_service.codes import InMemoryCodeChallengeSink
from services.courts_service.dependencies import CourtsServices, build_services
from services.courts_service.gateway import ChargeResult, GatewayError
from services.courts_service.membership import ParityMembershipLookup
from tests.factories import auth_headers_for

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
settings = get_settings()

TODAY = date(2026, 3, 10)


class FixedClock:
    """Calendar-day clock the tests can move."""

    def __init__(self, today: date = TODAY):
        self.today = today

    def __call__(self) -> date:
        return self.today


class RecordingNotificationSink:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail_with: Optional[Exception] = None

    async def send(self, event, channels, recipient, payload) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(
            {
                "event": event,
                "channels": list(channels),
                "recipient": recipient,
                "payload": payload,
            }
        )

    def events(self) -> list[str]:
        return [item["event"].value for item in self.sent]


class ScriptableGateway:
    """Approves by default; tests can decline, fail, or hold the charge open."""

    def __init__(self):
        self.calls: list[dict] = []
        self.approve = True
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.release: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def charge(self, amount, currency, reservation_id) -> ChargeResult:
        self.calls.append(
            {"amount": amount, "currency": currency, "reservation_id": reservation_id}
        )
        self.entered.set()
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ChargeResult(
            approved=self.approve, reference=f"TEST-{len(self.calls):04d}"
        )

    def fail(self, message: str = "gateway down") -> None:
        self.error = GatewayError(message, status_code=502)


@pytest.fixture
def test_settings() -> Settings:
    return settings


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def gateway() -> ScriptableGateway:
    return ScriptableGateway()


@pytest.fixture
def membership() -> ParityMembershipLookup:
    return ParityMembershipLookup()


@pytest.fixture
def codes() -> InMemoryCodeChallengeSink:
    return InMemoryCodeChallengeSink(ttl_seconds=settings.OTP_TTL_SECONDS)


@pytest_asyncio.fixture
async def test_engine():
    """
    In-memory SQLite engine; the whole database lives in one pinned
    connection and disappears with the engine.
    """
    engine = create_engine_from_url(settings.DATABASE_URL)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def courts(
    test_engine, clock, notification_sink, gateway, membership, codes
) -> AsyncGenerator[CourtsServices, None]:
    """Provisioned booking core wired to the fake collaborators."""
    services = build_services(
        settings,
        engine=test_engine,
        membership=membership,
        gateway=gateway,
        sink=notification_sink,
        codes=codes,
        hasher=BcryptPasswordHasher(rounds=4),
        today=clock,
    )
    await services.store.provision(settings, services.hasher)
    yield services


@pytest_asyncio.fixture
async def admin_id(courts) -> uuid.UUID:
    admin = await courts.accounts.find_user(settings.ADMIN_EMAIL)
    return admin.id


@pytest_asyncio.fixture
async def client(courts) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to an app that uses the test booking core.
    """
    app = create_app(settings, services=courts)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers(admin_id) -> dict:
    return auth_headers_for(admin_id, role="admin", email=settings.ADMIN_EMAIL)
