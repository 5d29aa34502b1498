from datetime import UTC, date, datetime

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class AvailabilityBlockBase(SQLModel):
    weekday: int  # 0 = Sunday ... 6 = Saturday
    start_time_of_day: str  # "HH:MM", clinic local time
    end_time_of_day: str
    is_recurring: bool = True
    start_date: date | None = None
    end_date: date | None = None


class AvailabilityBlock(AvailabilityBlockBase, table=True):
    __tablename__ = "availability_blocks"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_availability_blocks_weekday"),
        # Times are stored zero-padded "HH:MM", so string order is time order
        CheckConstraint(
            "start_time_of_day < end_time_of_day", name="ck_availability_blocks_start_before_end"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    # Blocks belong to the provider and go away with them
    provider_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AvailabilityBlockWrite(AvailabilityBlockBase):
    pass


class AvailabilityBlockPublic(AvailabilityBlockBase):
    id: int
    provider_id: int
