"""Overlap detection against a provider's calendar.

``intervals_overlap`` is the only overlap rule in the codebase: slot filtering
and the commit-time gate in the appointment lifecycle both go through it.
Intervals are half-open, so back-to-back appointments do not conflict.
"""
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import BLOCKING_STATUSES, Appointment
from app.models.provider_calendar import ProviderCalendar


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def conflicts_with(start: datetime, end: datetime, appointments: Iterable[Appointment]) -> bool:
    return any(
        intervals_overlap(start, end, a.start_time, a.end_time)
        for a in appointments
        if a.start_time is not None and a.end_time is not None
    )


async def list_blocking_appointments(
    session: AsyncSession,
    provider_id: int,
    window_start: datetime,
    window_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """Timed PENDING/CONFIRMED appointments of the provider touching [window_start, window_end)."""
    q = (
        select(Appointment)
        .where(
            Appointment.provider_id == provider_id,
            Appointment.status.in_(BLOCKING_STATUSES),
            Appointment.start_time.is_not(None),
            Appointment.start_time < window_end,
            Appointment.end_time > window_start,
        )
        .order_by(Appointment.start_time)
        .execution_options(populate_existing=True)
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def overlaps(
    session: AsyncSession,
    provider_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    appointments = await list_blocking_appointments(
        session, provider_id, start, end, exclude_appointment_id
    )
    return conflicts_with(start, end, appointments)


async def read_calendar_version(session: AsyncSession, provider_id: int) -> int:
    """Current version of the provider's calendar, creating the row on first use."""
    result = await session.execute(
        select(ProviderCalendar.version).where(ProviderCalendar.provider_id == provider_id)
    )
    version = result.scalar_one_or_none()
    if version is not None:
        return version
    # Another request may create it concurrently; the insert then does nothing
    insert = pg_insert if session.bind.dialect.name == "postgresql" else sqlite_insert
    await session.execute(
        insert(ProviderCalendar)
        .values(provider_id=provider_id, version=0, updated_at=_utc_naive_now())
        .on_conflict_do_nothing(index_elements=["provider_id"])
    )
    result = await session.execute(
        select(ProviderCalendar.version).where(ProviderCalendar.provider_id == provider_id)
    )
    return result.scalar_one()


async def bump_calendar_version(session: AsyncSession, provider_id: int, expected_version: int) -> bool:
    """Compare-and-swap the calendar version. False means another commit got there first."""
    result = await session.execute(
        update(ProviderCalendar)
        .where(
            ProviderCalendar.provider_id == provider_id,
            ProviderCalendar.version == expected_version,
        )
        .values(
            version=expected_version + 1,
            updated_at=_utc_naive_now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
