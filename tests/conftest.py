"""Shared fixtures: an in-memory SQLite database and a handful of users."""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CLINIC_UTC_OFFSET_MINUTES"] = "330"
os.environ["AVAILABILITY_POLICY"] = "multi"
os.environ["SMTP_HOST"] = ""

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import UTC, date, datetime, timedelta  # noqa: E402

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import app.models  # noqa: E402,F401 - register tables
from app.core.timezone import local_weekday, normalizer  # noqa: E402
from app.models.appointment_type import AppointmentTypeCreate  # noqa: E402
from app.models.availability import AvailabilityBlockWrite  # noqa: E402
from app.models.user import Role, UserCreate  # noqa: E402
from app.services.appointment_type_service import create_type  # noqa: E402
from app.services.auth_service import create_user  # noqa: E402
from app.services.availability_service import add_block  # noqa: E402

MONDAY = 1


def upcoming(weekday: int, weeks_ahead: int = 2) -> date:
    """A clinic-local date at least ``weeks_ahead`` weeks out that falls on ``weekday`` (0 = Sunday)."""
    today = normalizer.local_date(datetime.now(UTC).replace(tzinfo=None))
    d = today + timedelta(days=7 * weeks_ahead)
    while local_weekday(d) != weekday:
        d += timedelta(days=1)
    return d


def at(d: date, hhmm: str) -> datetime:
    return normalizer.to_utc(d, hhmm)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def users(session):
    """patient, other_patient, provider, other_provider, manager."""
    created = {}
    for key, role in [
        ("patient", Role.PATIENT),
        ("other_patient", Role.PATIENT),
        ("provider", Role.PROVIDER),
        ("other_provider", Role.PROVIDER),
        ("manager", Role.MANAGER),
    ]:
        created[key] = await create_user(
            session, UserCreate(email=f"{key}@example.com", full_name=key.replace("_", " ").title(), role=role)
        )
    await session.commit()
    return created


@pytest_asyncio.fixture
async def checkup(session):
    """30-minute appointment type."""
    appointment_type = await create_type(session, AppointmentTypeCreate(name="Checkup", duration_minutes=30))
    await session.commit()
    return appointment_type


@pytest_asyncio.fixture
async def monday_hours(session, users):
    """Provider works Mondays 09:00-17:00."""
    block = await add_block(
        session,
        users["provider"].id,
        AvailabilityBlockWrite(weekday=MONDAY, start_time_of_day="09:00", end_time_of_day="17:00"),
    )
    await session.commit()
    return block


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, int]] = []

    def appointment_confirmed(self, appointment, patient) -> None:
        self.events.append(("confirmed", appointment.id))

    def appointment_cancelled(self, appointment, patient) -> None:
        self.events.append(("cancelled", appointment.id))


class FailingNotifier:
    def appointment_confirmed(self, appointment, patient) -> None:
        raise RuntimeError("SMTP down")

    def appointment_cancelled(self, appointment, patient) -> None:
        raise RuntimeError("SMTP down")
