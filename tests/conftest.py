import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("NOTIFICATIONS_BACKEND", "log")
os.environ.setdefault("CARE_TIMEZONE", "UTC")

import pytest
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple
from uuid import uuid4
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from carecoord.main import app
from carecoord.db.base import Base
from carecoord.db.models import CareRecipient, FamilyMembership, FamilyRole
from carecoord.db.postgres import get_db
from carecoord.auth.middleware import verify_token
from carecoord.auth.models import Principal
from carecoord.cache.backend import InMemoryTTLCache
from carecoord.cache.service import CacheService, get_cache
from carecoord.notifications.events import EventKind
from carecoord.notifications.outbox import get_notification_sink
from carecoord.notifications.sink import NotificationSink
from carecoord.medications.service import MedicationService
from carecoord.shifts.service import ShiftService

# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")


class RecordingSink(NotificationSink):
    """Captures notifications instead of delivering them"""

    def __init__(self):
        self.events: List[Tuple[EventKind, Dict[str, Any]]] = []

    def notify(self, kind: EventKind, payload: Dict[str, Any]) -> None:
        self.events.append((kind, payload))

    def of_kind(self, kind: EventKind) -> List[Dict[str, Any]]:
        return [payload for k, payload in self.events if k == kind]


@dataclass
class FakeClock:
    current: datetime = field(default_factory=lambda: datetime(2024, 3, 15, 8, 0))

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture(scope="function")
async def engine():
    kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, **kwargs)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory):
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def family(db_session):
    """
    One family with a care recipient and members of every role.

    outsider holds no membership; caregiver_b is a second CAREGIVER.
    """
    family_id = uuid4()
    recipient = CareRecipient(id=uuid4(), family_id=family_id, full_name="Margaret Hale", preferred_name="Maggie")
    db_session.add(recipient)

    users = {name: uuid4() for name in ("admin", "caregiver", "caregiver_b", "viewer", "outsider")}
    roles = {
        "admin": FamilyRole.ADMIN,
        "caregiver": FamilyRole.CAREGIVER,
        "caregiver_b": FamilyRole.CAREGIVER,
        "viewer": FamilyRole.VIEWER,
    }
    for name, role in roles.items():
        db_session.add(FamilyMembership(family_id=family_id, user_id=users[name], role=role.value))
    await db_session.commit()

    return SimpleNamespace(
        id=family_id,
        recipient=recipient,
        recipient_id=recipient.id,
        users=users,
        principals={name: Principal(user_id=user_id) for name, user_id in users.items()},
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def cache():
    return CacheService(InMemoryTTLCache(), enabled=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def shift_service(db_session, cache, sink, clock):
    return ShiftService(db_session, cache, sink, now_fn=clock.now)


@pytest.fixture
def medication_service(db_session, cache, sink, clock):
    return MedicationService(db_session, cache, sink, now_fn=clock.now)


@pytest.fixture(scope="function")
async def client(db_session, cache, sink):
    """Create a test client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_notification_sink] = lambda: sink

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Authenticate subsequent requests as the given user"""

    def _login(user_id):
        app.dependency_overrides[verify_token] = lambda: Principal(user_id=user_id, roles=["user"])

    return _login

