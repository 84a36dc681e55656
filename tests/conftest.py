import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

# must be set before anything under app/ is imported
_DB_PATH = os.path.join(tempfile.gettempdir(), f"devpath-test-{uuid.uuid4().hex}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["BREVO_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["RESET_LINK_SECRET"] = "test-reset-secret"
os.environ["DEBUG"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.database import AsyncSessionLocal, Base, create_tables, engine
from app.core.dependencies import get_signup_registry
from app.core.email_service import EmailDeliveryError, get_email_sender
from app.main import app
from app.services.flow_registry import SignupFlowRegistry


class Clock:
    """Manually advanced clock, callable like ``utcnow``."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeEmailSender:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def _record(self, kind: str, to_email: str, to_name: str, **extra) -> None:
        if self.fail:
            raise EmailDeliveryError("Brevo error 500: unavailable")
        self.sent.append({"kind": kind, "to_email": to_email, "to_name": to_name, **extra})

    async def send_otp_email(self, to_email, to_name, otp_code):
        self._record("otp", to_email, to_name, code=otp_code)

    async def send_reset_code_email(self, to_email, to_name, otp_code):
        self._record("reset_code", to_email, to_name, code=otp_code)

    async def send_reset_link_email(self, to_email, to_name, reset_url):
        self._record("reset_link", to_email, to_name, url=reset_url)

    def last(self, kind: str) -> dict:
        return [m for m in self.sent if m["kind"] == kind][-1]


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def outbox() -> FakeEmailSender:
    return FakeEmailSender()


@pytest_asyncio.fixture
async def db_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_tables()
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_tables):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def signup_registry() -> SignupFlowRegistry:
    return SignupFlowRegistry()


@pytest_asyncio.fixture
async def client(db_tables, outbox, signup_registry):
    app.dependency_overrides[get_email_sender] = lambda: outbox
    app.dependency_overrides[get_signup_registry] = lambda: signup_registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def pytest_sessionfinish(session, exitstatus):
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)
