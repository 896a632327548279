"""
Pytest configuration for Volunteer Hub backend tests.

Database: in-memory SQLite (aiosqlite) shared through a StaticPool.
Redis: AsyncMock. Outbound HTTP: httpx.MockTransport.
"""

import os

os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret-key-0123456789abcdef")
os.environ.setdefault("ENVIRONMENT", "development")

from datetime import date, timedelta
from typing import Any, Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_http_client, get_redis, get_service_credentials
from volunteer_hub.core.security import create_session_token, generate_public_id, utcnow
from volunteer_hub.main import app
from volunteer_hub.models import (
    Base,
    MemberStatus,
    OrgMember,
    OrgRole,
    Organization,
    VolunteerEvent,
    VolunteerList,
    VolunteerSignup,
)
from volunteer_hub.services.identity_provider import ServiceCredentialCache

ISSUER = "https://idp.example.test"


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncSession:
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

@pytest.fixture
def redis_mock() -> AsyncMock:
    redis = AsyncMock()
    redis.exists.return_value = 0
    redis.get.return_value = None
    redis.setex.return_value = True
    return redis


# ---------------------------------------------------------------------------
# Outbound HTTP
# ---------------------------------------------------------------------------

class FakeUpstream:
    """Route table for httpx.MockTransport keyed by (method, url without query)."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[httpx.Request] = []

    def add(self, method: str, url: str, status_code: int = 200, json: Any = None) -> None:
        self.routes[(method.upper(), url)] = lambda request: httpx.Response(status_code, json=json)

    def add_handler(self, method: str, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method.upper(), url)] = handler

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.calls if str(r.url).split("?")[0] == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, str(request.url).split("?")[0]))
        if handler is None:
            return httpx.Response(404, json={"message": "no route"})
        return handler(request)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def http_client(upstream) -> httpx.AsyncClient:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def service_credentials(http_client) -> ServiceCredentialCache:
    return ServiceCredentialCache(
        client=http_client,
        issuer=ISSUER,
        client_id="service-client",
        client_secret="service-secret",
    )


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def email_tasks():
    """Never reach a Celery broker from tests."""
    with patch("volunteer_hub.workers.email_tasks.send_magic_link_email.delay") as magic, \
            patch("volunteer_hub.workers.email_tasks.send_invitation_email.delay") as invitation:
        yield {"magic_link": magic, "invitation": invitation}


# ---------------------------------------------------------------------------
# App client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(db_session, redis_mock, http_client, service_credentials) -> httpx.AsyncClient:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis_mock
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_service_credentials] = lambda: service_credentials

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def _make(email: str, org_public_id: str | None = None) -> dict[str, str]:
        token, _ = create_session_token(email)
        headers = {"Authorization": f"Bearer {token}"}
        if org_public_id:
            headers["X-Organization-Id"] = org_public_id
        return headers

    return _make


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class Factory:
    """Builds rows directly in the test session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def org(self, owner_email: str = "owner@example.com", name: str = "Grace Church") -> Organization:
        org = Organization(
            name=name,
            slug=f"org-{generate_public_id()}",
            public_id=generate_public_id(),
            description="Sunday volunteers",
        )
        self.db.add(org)
        await self.db.flush()
        await self.member(org, owner_email, OrgRole.owner)
        await self.db.refresh(org)
        return org

    async def member(
        self,
        org: Organization,
        email: str,
        role: OrgRole = OrgRole.member,
        status: MemberStatus = MemberStatus.active,
    ) -> OrgMember:
        now = utcnow()
        member = OrgMember(
            organization_id=org.id,
            user_email=email,
            role=role,
            status=status,
            invited_at=now,
            joined_at=now if status == MemberStatus.active else None,
        )
        self.db.add(member)
        await self.db.flush()
        return member

    async def event(
        self,
        org: Organization,
        slug: str = "sunday-service",
        title: str = "Sunday Service",
        event_date: date | None = None,
        is_active: bool = True,
        sort_order: int | None = None,
    ) -> VolunteerEvent:
        event = VolunteerEvent(
            organization_id=org.id,
            slug=slug,
            title=title,
            event_date=event_date,
            is_active=is_active,
            sort_order=sort_order,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def volunteer_list(
        self,
        event: VolunteerEvent,
        title: str = "Greeters",
        position: int = 0,
        max_slots: int | None = None,
        is_locked: bool = False,
    ) -> VolunteerList:
        volunteer_list = VolunteerList(
            event_id=event.id,
            title=title,
            position=position,
            max_slots=max_slots,
            is_locked=is_locked,
        )
        self.db.add(volunteer_list)
        await self.db.flush()
        return volunteer_list

    async def signup(
        self,
        volunteer_list: VolunteerList,
        name: str = "Ada",
        position: int = 0,
        phone: str | None = None,
        sms_consent: bool = False,
        **extra: Any,
    ) -> VolunteerSignup:
        signup = VolunteerSignup(
            list_id=volunteer_list.id,
            name=name,
            position=position,
            phone=phone,
            sms_consent=sms_consent,
            sms_opted_out=extra.pop("sms_opted_out", False),
            reminder_count=extra.pop("reminder_count", 0),
            created_at=extra.pop("created_at", utcnow()),
            **extra,
        )
        self.db.add(signup)
        await self.db.flush()
        return signup


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def tomorrow() -> date:
    return utcnow().date() + timedelta(days=1)
