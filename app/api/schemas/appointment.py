from datetime import date, datetime

from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    start_utc: datetime
    end_utc: datetime
    start_local: str  # HH:MM, clinic time
    end_local: str


class AvailableSlotsResponse(BaseModel):
    provider_id: int
    date: str  # YYYY-MM-DD, clinic-local
    duration_minutes: int
    slots: list[SlotInfo]


class RequestAppointmentRequest(BaseModel):
    appointment_type_id: int
    requested_date: date
    notes: str | None = Field(default=None, max_length=2000)


class ConfirmAppointmentRequest(BaseModel):
    provider_id: int
    # Aware datetimes are converted to UTC; naive ones are taken as UTC
    start_time: datetime


class CancelAppointmentRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
