"""
Shared fixtures: in-memory SQLite database, service dependencies and an
HTTP client bound to a freshly built application.
"""

from __future__ import annotations

import os

# Must be set before anything imports app.core.config
os.environ["OLM_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["OLM_LICENSE_RENEWAL_ENABLED"] = "false"
os.environ["OLM_AUTH_DEV_LOGIN_ENABLED"] = "true"
os.environ["OLM_LOG_FORMAT"] = "text"

import uuid
from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core.auth import create_access_token
from app.core.database import get_session
from app.main import create_app
from app.models.user import User
from app.services.license_settings import LicenseSettingsService
from app.services.notifications import InvitationNotifier


class RecordingNotifier(InvitationNotifier):
    """Captures invitation notifications instead of sending them."""

    def __init__(self):
        super().__init__("http://test")
        self.sent: list[tuple[str, str, str]] = []

    async def notify_invitation(self, email: str, organization_name: str, token: str) -> None:
        self.sent.append((email, organization_name, token))


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def session_context(session_factory):
    """Stand-in for ``get_session_context`` bound to the test database."""

    @asynccontextmanager
    async def _context():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    return _context


@pytest.fixture
def make_user(session):
    async def _make(email: str | None = None, role: str = "User") -> User:
        external_id = f"ext-{uuid.uuid4().hex[:12]}"
        user = User(external_id=external_id, email=email or f"{external_id}@example.com", role=role)
        session.add(user)
        await session.flush()
        return user

    return _make


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
async def license_settings(session_context):
    service = LicenseSettingsService(session_context=session_context)
    yield service
    await service.drain()


@pytest.fixture
async def notifier():
    recorder = RecordingNotifier()
    yield recorder
    await recorder.drain()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def application(session_factory, license_settings, notifier):
    api = create_app()

    async def _get_test_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    api.dependency_overrides[get_session] = _get_test_session
    api.state.license_settings = license_settings
    api.state.notifier = notifier
    return api


@pytest.fixture
async def client(application):
    async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as ac:
        yield ac


def bearer(subject: str, email: str, role: str = "User") -> dict[str, str]:
    token, _ = create_access_token(subject, email, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice_headers():
    return bearer("alice", "alice@example.com")


@pytest.fixture
def bob_headers():
    return bearer("bob", "b@x.com")


@pytest.fixture
def admin_headers():
    return bearer("root", "root@example.com", role="Admin")


@pytest.fixture
def headers_for():
    """Factory: ``headers_for(subject, email, role="User")`` -> auth headers."""
    return bearer
