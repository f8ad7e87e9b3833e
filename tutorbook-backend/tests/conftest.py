"""
Shared fixtures

Every test gets its own SQLite file database built from the ORM metadata and
a change feed backed by an AsyncMock instead of Redis.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_JWT_SECRET", "tutorbook-test-signing-secret-0123456789")

import uuid
from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

import tutorbook.models  # noqa: F401
from tutorbook.database import Base, build_engine, build_session_factory
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.group_session import GroupSession
from tutorbook.models.tutor import Tutor
from tutorbook.models.tutoring_service import TutoringService
from tutorbook.schemas import BookingSubmission, CurrentUser
from tutorbook.services.booking_service import BookingService
from tutorbook.services.change_feed import ChangeFeed

# 2025-03-01 is a Saturday (day_of_week 6)
SESSION_DATE = date(2025, 3, 1)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tutorbook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def redis_mock():
    redis = AsyncMock()
    redis.publish.return_value = 1
    return redis


@pytest.fixture
def change_feed(redis_mock):
    return ChangeFeed(redis_getter=lambda: redis_mock, prefix="test")


@pytest.fixture
def booking_service(session_factory, change_feed):
    return BookingService(session_factory=session_factory, change_feed=change_feed)


@pytest.fixture
def admin():
    return CurrentUser(id=uuid.uuid4(), role="admin")


@pytest.fixture
def new_student():
    """Factory for distinct student identities"""
    def make():
        return CurrentUser(id=uuid.uuid4(), role="student")
    return make


@pytest.fixture
async def catalog(session_factory):
    """Mathematics (online + in person), Physics (online only), Chemistry (in person only)"""
    async with session_factory() as session:
        math = TutoringService(
            name="Mathematics", online_available=True, in_person_available=True,
            hourly_rate=Decimal("45.00"), is_active=True,
        )
        physics = TutoringService(name="Physics", online_available=True, in_person_available=False, is_active=True)
        chemistry = TutoringService(name="Chemistry", online_available=False, in_person_available=True, is_active=True)
        retired = TutoringService(name="Latin", online_available=True, in_person_available=True, is_active=False)
        session.add_all([math, physics, chemistry, retired])
        await session.commit()
    return SimpleNamespace(math=math, physics=physics, chemistry=chemistry, retired=retired)


@pytest.fixture
async def tutors(session_factory):
    """
    Six approved tutors.

    x works Saturday 09:00-17:00, y Saturday 14:00-18:00, z Monday only;
    the rest have no availability.
    """
    windows = {
        "x": [(6, time(9), time(17))],
        "y": [(6, time(14), time(18))],
        "z": [(1, time(9), time(17))],
    }
    async with session_factory() as session:
        roster = {}
        for key in ("x", "y", "z", "t4", "t5", "t6"):
            tutor = Tutor(
                id=uuid.uuid4(),
                name=f"Tutor {key.upper()}",
                email=f"{key}@tutors.example.com",
                subjects=["Mathematics"],
                status="approved",
                availability=[
                    TutorAvailability(day_of_week=day, start_time=start, end_time=end)
                    for day, start, end in windows.get(key, [])
                ],
            )
            session.add(tutor)
            roster[key] = tutor
        await session.commit()
    return SimpleNamespace(**roster)


@pytest.fixture
def group_request():
    def make(service_id, preferred_date=SESSION_DATE, preferred_time=None, notes=None):
        return BookingSubmission(
            service_id=service_id,
            class_type="group",
            preferred_date=preferred_date,
            preferred_time=preferred_time,
            notes=notes,
        )
    return make


@pytest.fixture
def one_on_one_request():
    def make(service_id, **overrides):
        fields = dict(
            service_id=service_id,
            class_type="one-on-one",
            delivery_mode="online",
            preferred_date=SESSION_DATE,
            preferred_time=time(15, 0),
            curriculum="IB",
            duration_minutes=60,
        )
        fields.update(overrides)
        return BookingSubmission(**fields)
    return make


@pytest.fixture
def make_group(session_factory):
    """Insert a group session directly with chosen thresholds"""
    async def make(service, min_students=3, max_students=40, status="forming", preferred_date=SESSION_DATE):
        async with session_factory() as session:
            group = GroupSession(
                service_id=service.id,
                subject=service.name,
                session_type="online",
                preferred_date=preferred_date,
                status=status,
                min_students=min_students,
                max_students=max_students,
                current_count=0,
                participants=[],
                tutors=[],
            )
            session.add(group)
            await session.commit()
        return group
    return make
