from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, field_validator

from brokerhub.schemas.availability import parse_clock_time

MAX_APPOINTMENT_NOTES_LENGTH = 600


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    broker_id: str
    date: str
    start_time: str
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    title: str | None = None
    notes: str | None = None

    @field_validator('date')
    @classmethod
    def validate_date(cls, value: str) -> str:
        normalized = value.strip()
        try:
            return date.fromisoformat(normalized).isoformat()
        except ValueError as exc:
            raise ValueError('Date must use the YYYY-MM-DD format.') from exc

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        parsed = parse_clock_time(value.strip())
        if parsed is None:
            raise ValueError('Start time must use the HH:MM format.')
        return parsed.strftime('%H:%M')

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class UpdateAppointmentRequest(BaseModel):
    title: str | None = None
    notes: str | None = None
    status: AppointmentStatus | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class AppointmentResponse(BaseModel):
    id: str
    broker_id: str
    client_id: str
    client_name: str
    client_email: str
    client_phone: str
    date: str
    start_time: str
    end_time: str
    status: AppointmentStatus
    title: str
    notes: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
