"""Conversion between clinic wall-clock time and stored instants.

Instants are naive UTC datetimes (the columns are TIMESTAMP WITHOUT TIME ZONE).
The clinic runs on a fixed UTC offset with no DST, so every conversion is a
plain shift and a local time converted to UTC and back is reproduced exactly.
"""
import re
from datetime import UTC, date, datetime, time, timedelta

from app.core.config import settings
from app.core.errors import ValidationError

_HHMM = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" (24h, 00:00 to 23:59) into a time, raising ValidationError when malformed.

    "24:00" is not accepted, so the latest a block can end is 23:59.
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid time of day: {value!r} (expected HH:MM)")
    match = _HHMM.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid time of day: {value!r} (expected HH:MM)")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def to_naive_utc(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


class TimeZoneNormalizer:
    def __init__(self, offset_minutes: int) -> None:
        self.offset = timedelta(minutes=offset_minutes)

    @property
    def label(self) -> str:
        minutes = int(self.offset.total_seconds() // 60)
        sign = "+" if minutes >= 0 else "-"
        minutes = abs(minutes)
        return f"UTC{sign}{minutes // 60:02d}:{minutes % 60:02d}"

    def to_utc(self, local_date: date, hhmm: str) -> datetime:
        local = datetime.combine(local_date, parse_hhmm(hhmm))
        return local - self.offset

    def to_local(self, instant: datetime) -> tuple[date, str]:
        local = to_naive_utc(instant) + self.offset
        return local.date(), format_hhmm(local.time())

    def local_date(self, instant: datetime) -> date:
        return (to_naive_utc(instant) + self.offset).date()

    def day_bounds(self, local_date: date) -> tuple[datetime, datetime]:
        """UTC instants for local midnight of ``local_date`` and of the next day."""
        start = datetime.combine(local_date, time(0, 0)) - self.offset
        return start, start + timedelta(days=1)


def local_weekday(d: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


normalizer = TimeZoneNormalizer(settings.clinic_utc_offset_minutes)
