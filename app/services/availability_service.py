"""Provider working-hour blocks.

How many blocks a provider may have per weekday is a policy choice:

* ``single`` allows one block per (provider, weekday) among blocks whose
  effective date ranges intersect.
* ``multi`` allows several blocks per weekday as long as their times of day do
  not overlap (again only among blocks whose date ranges intersect).

The policy comes from ``settings.availability_policy`` unless a caller passes
one explicitly.
"""
import logging
from datetime import date, timedelta
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.timezone import local_weekday, parse_hhmm
from app.models.availability import AvailabilityBlock, AvailabilityBlockWrite
from app.services.conflict_service import intervals_overlap
from app.services.identity_service import resolve_provider

logger = logging.getLogger(__name__)


class AvailabilityPolicy(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


def current_policy() -> AvailabilityPolicy:
    return AvailabilityPolicy(settings.availability_policy)


def effective_range(block: AvailabilityBlockWrite | AvailabilityBlock) -> tuple[date | None, date | None]:
    if not block.is_recurring:
        return block.start_date, block.end_date or block.start_date
    return block.start_date, block.end_date


def _ranges_intersect(a: tuple[date | None, date | None], b: tuple[date | None, date | None]) -> bool:
    a_start, a_end = a
    b_start, b_end = b
    if a_end is not None and b_start is not None and a_end < b_start:
        return False
    if b_end is not None and a_start is not None and b_end < a_start:
        return False
    return True


def applies_on(block: AvailabilityBlock, d: date) -> bool:
    if block.weekday != local_weekday(d):
        return False
    start, end = effective_range(block)
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def validate_block(data: AvailabilityBlockWrite) -> None:
    if not isinstance(data.weekday, int) or not 0 <= data.weekday <= 6:
        raise ValidationError(f"Invalid weekday: {data.weekday!r} (expected 0=Sunday..6=Saturday)")
    start = parse_hhmm(data.start_time_of_day)
    end = parse_hhmm(data.end_time_of_day)
    if start >= end:
        raise ValidationError("End time must be after start time")
    if not data.is_recurring and data.start_date is None:
        raise ValidationError("A non-recurring block needs a start_date")
    if data.start_date and data.end_date and data.end_date < data.start_date:
        raise ValidationError("end_date must not be before start_date")
    range_start, range_end = effective_range(data)
    if range_start is not None and range_end is not None and (range_end - range_start) < timedelta(days=6):
        days = (range_end - range_start).days + 1
        if not any(local_weekday(range_start + timedelta(days=i)) == data.weekday for i in range(days)):
            raise ValidationError("The block's date range never falls on its weekday")


def _normalized(data: AvailabilityBlockWrite) -> AvailabilityBlockWrite:
    """Zero-pad times so stored values sort and compare as strings."""
    start = parse_hhmm(data.start_time_of_day)
    end = parse_hhmm(data.end_time_of_day)
    return data.model_copy(
        update={
            "start_time_of_day": f"{start.hour:02d}:{start.minute:02d}",
            "end_time_of_day": f"{end.hour:02d}:{end.minute:02d}",
        }
    )


async def _check_siblings(
    session: AsyncSession,
    provider_id: int,
    data: AvailabilityBlockWrite,
    policy: AvailabilityPolicy,
    exclude_id: int | None = None,
) -> None:
    q = select(AvailabilityBlock).where(
        AvailabilityBlock.provider_id == provider_id,
        AvailabilityBlock.weekday == data.weekday,
    )
    if exclude_id is not None:
        q = q.where(AvailabilityBlock.id != exclude_id)
    result = await session.execute(q)
    new_range = effective_range(data)
    new_start = parse_hhmm(data.start_time_of_day)
    new_end = parse_hhmm(data.end_time_of_day)
    for sibling in result.scalars().all():
        if not _ranges_intersect(new_range, effective_range(sibling)):
            continue
        if policy == AvailabilityPolicy.SINGLE:
            raise ConflictError(
                f"Provider {provider_id} already has an availability block on weekday {data.weekday}"
            )
        if intervals_overlap(
            new_start, new_end, parse_hhmm(sibling.start_time_of_day), parse_hhmm(sibling.end_time_of_day)
        ):
            raise ConflictError(
                f"Block overlaps existing block {sibling.id} "
                f"({sibling.start_time_of_day}-{sibling.end_time_of_day})"
            )


async def add_block(
    session: AsyncSession,
    provider_id: int,
    data: AvailabilityBlockWrite,
    policy: AvailabilityPolicy | None = None,
) -> AvailabilityBlock:
    validate_block(data)
    await resolve_provider(session, provider_id)
    data = _normalized(data)
    await _check_siblings(session, provider_id, data, policy or current_policy())
    block = AvailabilityBlock(provider_id=provider_id, **data.model_dump())
    session.add(block)
    await session.flush()
    await session.refresh(block)
    logger.info(
        "Availability block %s added for provider %s: weekday %s %s-%s",
        block.id, provider_id, block.weekday, block.start_time_of_day, block.end_time_of_day,
    )
    return block


async def get_block(session: AsyncSession, block_id: int) -> AvailabilityBlock:
    block = await session.get(AvailabilityBlock, block_id)
    if block is None:
        raise NotFoundError(f"Availability block {block_id} not found")
    return block


async def update_block(
    session: AsyncSession,
    block_id: int,
    data: AvailabilityBlockWrite,
    policy: AvailabilityPolicy | None = None,
) -> AvailabilityBlock:
    validate_block(data)
    block = await get_block(session, block_id)
    data = _normalized(data)
    await _check_siblings(session, block.provider_id, data, policy or current_policy(), exclude_id=block.id)
    for key, value in data.model_dump().items():
        setattr(block, key, value)
    session.add(block)
    await session.flush()
    await session.refresh(block)
    return block


async def remove_block(session: AsyncSession, block_id: int) -> None:
    block = await get_block(session, block_id)
    await session.delete(block)
    await session.flush()


async def remove_for_provider(session: AsyncSession, provider_id: int) -> int:
    """Delete every block owned by the provider. Returns count deleted."""
    result = await session.execute(
        delete(AvailabilityBlock).where(AvailabilityBlock.provider_id == provider_id)
    )
    await session.flush()
    return result.rowcount or 0


async def list_blocks(session: AsyncSession, provider_id: int) -> list[AvailabilityBlock]:
    await resolve_provider(session, provider_id)
    result = await session.execute(
        select(AvailabilityBlock)
        .where(AvailabilityBlock.provider_id == provider_id)
        .order_by(AvailabilityBlock.weekday, AvailabilityBlock.start_time_of_day)
    )
    return list(result.scalars().all())


async def list_blocks_for_date(session: AsyncSession, provider_id: int, d: date) -> list[AvailabilityBlock]:
    """Blocks that apply on local date ``d``, ordered by start time."""
    result = await session.execute(
        select(AvailabilityBlock)
        .where(
            AvailabilityBlock.provider_id == provider_id,
            AvailabilityBlock.weekday == local_weekday(d),
        )
        .order_by(AvailabilityBlock.start_time_of_day)
    )
    return [b for b in result.scalars().all() if applies_on(b, d)]


async def upsert_block(
    session: AsyncSession,
    provider_id: int,
    data: AvailabilityBlockWrite,
    block_id: int | None = None,
) -> AvailabilityBlock:
    if block_id is None:
        return await add_block(session, provider_id, data)
    block = await get_block(session, block_id)
    if block.provider_id != provider_id:
        raise NotFoundError(f"Availability block {block_id} not found for provider {provider_id}")
    return await update_block(session, block_id, data)
