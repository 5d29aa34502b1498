import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.timezone import normalizer, to_naive_utc
from app.models.availability import AvailabilityBlock
from app.services.appointment_type_service import get_type
from app.services.availability_service import list_blocks_for_date
from app.services.conflict_service import conflicts_with, list_blocking_appointments
from app.services.identity_service import resolve_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime  # naive UTC
    end: datetime


def _utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


def candidate_slots(
    blocks: list[AvailabilityBlock],
    d: date,
    duration_minutes: int,
    slot_interval_minutes: int,
) -> list[Slot]:
    """Slide a window of ``duration_minutes`` across each block, stepping by the
    slot interval. A candidate is kept only if it ends inside the same block it
    started in, so split blocks (e.g. around lunch) never yield straddling slots."""
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=slot_interval_minutes)
    candidates: set[Slot] = set()
    for block in blocks:
        block_start = normalizer.to_utc(d, block.start_time_of_day)
        block_end = normalizer.to_utc(d, block.end_time_of_day)
        cursor = block_start
        while cursor + duration <= block_end:
            candidates.add(Slot(cursor, cursor + duration))
            cursor += step
    return sorted(candidates)


async def generate_slots(
    session: AsyncSession,
    provider_id: int,
    d: date,
    duration_minutes: int,
    slot_interval_minutes: int | None = None,
    now: datetime | None = None,
) -> list[Slot]:
    """Free windows for the provider on local date ``d``, ascending by start."""
    interval = settings.slot_interval_minutes if slot_interval_minutes is None else slot_interval_minutes
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive")
    if interval <= 0:
        raise ValidationError("Slot interval must be positive")
    blocks = await list_blocks_for_date(session, provider_id, d)
    if not blocks:
        return []
    candidates = candidate_slots(blocks, d, duration_minutes, interval)
    if not candidates:
        return []
    cutoff = to_naive_utc(now) if now is not None else _utc_naive_now()
    window_start = candidates[0].start
    window_end = max(s.end for s in candidates)
    booked = await list_blocking_appointments(session, provider_id, window_start, window_end)
    free = [
        s for s in candidates
        if s.start >= cutoff and not conflicts_with(s.start, s.end, booked)
    ]
    logger.debug(
        "Slots for provider %s on %s: %d candidates, %d free (%d booked)",
        provider_id, d, len(candidates), len(free), len(booked),
    )
    return free


async def list_available_slots(
    session: AsyncSession,
    provider_id: int,
    d: date,
    type_id: int,
    slot_interval_minutes: int | None = None,
    now: datetime | None = None,
) -> tuple[list[Slot], int]:
    """Slots sized by the appointment type's duration. Returns (slots, duration_minutes)."""
    await resolve_provider(session, provider_id)
    appointment_type = await get_type(session, type_id)
    slots = await generate_slots(
        session, provider_id, d, appointment_type.duration_minutes, slot_interval_minutes, now
    )
    return slots, appointment_type.duration_minutes
