"""Weekly availability documents and the slots derived from them."""

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator

# Index matches date.weekday(): Monday is 0.
WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

CLOCK_TIME_FORMAT = '%H:%M'


def parse_clock_time(value: str | None) -> time | None:
    """Parse an "HH:MM" string, returning None when it is malformed."""
    try:
        return datetime.strptime(value, CLOCK_TIME_FORMAT).time()
    except (TypeError, ValueError):
        return None


class TimeSlot(BaseModel):
    start: str | None = None
    end: str | None = None

    @field_validator('start', 'end', mode='before')
    @classmethod
    def ignore_non_string_times(cls, value):
        # Stored documents may hold anything here; such bounds read as missing.
        return value if isinstance(value, str) else None


class DayAvailability(BaseModel):
    enabled: bool = False
    time_slots: list[TimeSlot] = Field(default_factory=list, alias='timeSlots')

    class Config:
        populate_by_name = True

    @field_validator('time_slots', mode='before')
    @classmethod
    def default_missing_time_slots(cls, value):
        return [] if value is None else value


class WeeklyAvailability(BaseModel):
    monday: DayAvailability = Field(default_factory=DayAvailability)
    tuesday: DayAvailability = Field(default_factory=DayAvailability)
    wednesday: DayAvailability = Field(default_factory=DayAvailability)
    thursday: DayAvailability = Field(default_factory=DayAvailability)
    friday: DayAvailability = Field(default_factory=DayAvailability)
    saturday: DayAvailability = Field(default_factory=DayAvailability)
    sunday: DayAvailability = Field(default_factory=DayAvailability)

    def for_day(self, day: date) -> DayAvailability:
        return getattr(self, WEEKDAY_NAMES[day.weekday()])


DEFAULT_TIME_SLOT = TimeSlot(start='08:00', end='17:00')


def default_weekly_availability() -> WeeklyAvailability:
    """Template offered to brokers who never saved one: weekdays 08:00-17:00."""
    days = {}
    for index, name in enumerate(WEEKDAY_NAMES):
        days[name] = DayAvailability(
            enabled=index < 5,
            time_slots=[DEFAULT_TIME_SLOT.model_copy()],
        )
    return WeeklyAvailability(**days)


class UpdateAvailabilityRequest(BaseModel):
    availability: WeeklyAvailability

    @field_validator('availability')
    @classmethod
    def validate_time_slots(cls, value: WeeklyAvailability) -> WeeklyAvailability:
        for name in WEEKDAY_NAMES:
            day = getattr(value, name)
            if not day.enabled:
                continue

            for slot in day.time_slots:
                start = parse_clock_time(slot.start)
                end = parse_clock_time(slot.end)
                if start is None or end is None:
                    raise ValueError(f'Invalid time on {name}: times must use the HH:MM format.')
                if start >= end:
                    raise ValueError(f'Invalid time range on {name}: {slot.start} must be before {slot.end}.')

        return value


class AvailableSlot(BaseModel):
    date: str
    start_time: str
    end_time: str
    formatted_date: str
    is_empty: bool = False


class BrokerAvailabilityResponse(BaseModel):
    broker_id: str
    first_name: str
    last_name: str
    cabinet_role: str
    availability: WeeklyAvailability
