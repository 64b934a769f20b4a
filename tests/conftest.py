"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite in-memory engine (aiosqlite + StaticPool,
   so every session shares the one connection) with the schema created.
2. The app's get_db dependency is overridden to hand out sessions from
   that engine; the mail worker is replaced by a recorder so tests can
   inspect queued emails without a mail provider.
3. The engine is disposed after the test — nothing leaks between tests.

bcrypt runs at cost 4 here; production uses settings.bcrypt_rounds (14).
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from threadstocks.config import Settings
from threadstocks.db.engine import build_engine, build_session_factory, create_schema, get_db
from threadstocks.main import create_app
from threadstocks.services.email_service import OutboundEmail
from threadstocks.services.mail_worker import get_mail_worker

TEST_SETTINGS = dict(
    database_url="sqlite+aiosqlite://",
    jwt_secret="test-secret-not-for-production",
    bcrypt_rounds=4,
    auto_create_schema=False,
    contact_email="owner@threadstocks.test",
    frontend_url="http://frontend.test",
    environment="development",
    log_level="WARNING",
)


class RecordingMailer:
    """Stands in for MailWorker: keeps queued emails in a list."""

    def __init__(self):
        self.emails: list[OutboundEmail] = []

    def enqueue(self, email: OutboundEmail) -> bool:
        self.emails.append(email)
        return True


@pytest.fixture()
def settings():
    return Settings(**TEST_SETTINGS)


@pytest_asyncio.fixture()
async def session_factory(settings):
    engine = build_engine(settings)
    await create_schema(engine)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest_asyncio.fixture()
async def app(settings, session_factory, mailer):
    app = create_app(settings)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_worker] = lambda: mailer
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client against the app — no session unless a test logs in."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register(client, name: str | None = None, password: str = "password_123") -> dict:
    """Register a user through the API.

    Returns the user JSON plus the token and ready-made bearer headers.
    The session cookie is dropped so each request says explicitly who it is.
    """
    name = name or f"user-{uuid.uuid4().hex[:8]}"
    r = await client.post(
        "/api/v1/register",
        json={
            "username": name,
            "email": f"{name}@example.com",
            "password": password,
            "confirm_password": password,
        },
    )
    assert r.status_code == 201, r.text
    client.cookies.clear()
    body = r.json()
    return {
        **body["user"],
        "password": password,
        "token": body["access_token"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }
