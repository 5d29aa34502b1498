from datetime import UTC, datetime

from sqlalchemy import Column, ForeignKey, Integer
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class ProviderCalendar(SQLModel, table=True):
    """Version counter for one provider's set of committed appointments.

    Every commit that adds a window to the calendar bumps ``version`` with a
    compare-and-swap, so two confirms that read the same version cannot both land.
    """

    __tablename__ = "provider_calendars"
    provider_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    )
    version: int = 0
    updated_at: datetime = Field(default_factory=_utc_naive_now)
