"""
Bookable slot generation.

Combines a broker's recurring weekly template with the appointments already
booked over a rolling horizon, and yields fixed-length slots that are in the
future and free. Every day of the horizon is represented: a day with nothing
bookable gets a single empty marker entry.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, Sequence

from brokerhub.core import config
from brokerhub.core.clock import Clock, SystemClock
from brokerhub.schemas.appointment import AppointmentStatus
from brokerhub.schemas.availability import (
    AvailableSlot,
    TimeSlot,
    WeeklyAvailability,
    parse_clock_time,
)
from brokerhub.services.document_store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

SLOT_DURATION_MINUTES = 30

FRENCH_WEEKDAYS = ('lundi', 'mardi', 'mercredi', 'jeudi', 'vendredi', 'samedi', 'dimanche')
FRENCH_MONTHS = (
    'janvier', 'février', 'mars', 'avril', 'mai', 'juin',
    'juillet', 'août', 'septembre', 'octobre', 'novembre', 'décembre',
)


def format_date_label(day: date) -> str:
    """Display label such as "lundi 05 janvier"."""
    return f'{FRENCH_WEEKDAYS[day.weekday()]} {day.day:02d} {FRENCH_MONTHS[day.month - 1]}'


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _to_clock(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def normalize_intervals(time_slots: Iterable[TimeSlot]) -> list[tuple[int, int]]:
    """Parse, sort and merge a day's intervals, as minutes since midnight.

    Malformed or reversed intervals are dropped. Only strictly overlapping
    intervals are merged; touching ones keep their own slot grid.
    """
    intervals: list[tuple[int, int]] = []
    for slot in time_slots:
        start = parse_clock_time(slot.start)
        end = parse_clock_time(slot.end)
        if start is None or end is None:
            logger.warning('Skipping malformed availability interval %r-%r', slot.start, slot.end)
            continue
        if start >= end:
            logger.warning('Skipping empty availability interval %s-%s', slot.start, slot.end)
            continue
        intervals.append((_to_minutes(start), _to_minutes(end)))

    intervals.sort()
    merged: list[tuple[int, int]] = []
    for start, end in intervals:
        if merged and start < merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))

    return merged


def partition_interval(start: int, end: int, step: int = SLOT_DURATION_MINUTES) -> Iterator[tuple[int, int]]:
    """Consecutive full sub-intervals of [start, end); a trailing remainder is dropped."""
    current = start
    while current + step <= end:
        yield current, current + step
        current += step


def overlaps(slot_start: int, slot_end: int, booked_start: int, booked_end: int) -> bool:
    return (
        booked_start <= slot_start < booked_end
        or booked_start <= slot_end < booked_end
        or (slot_start <= booked_start and slot_end >= booked_end)
    )


def _blocking_intervals(appointments: Iterable) -> dict[str, list[tuple[int, int]]]:
    """Booked intervals per date; cancelled appointments free their slot."""
    blocking: dict[str, list[tuple[int, int]]] = {}
    for appointment in appointments:
        if appointment.status == AppointmentStatus.CANCELLED.value:
            continue

        start = parse_clock_time(appointment.start_time)
        end = parse_clock_time(appointment.end_time)
        if start is None or end is None:
            logger.warning(
                'Ignoring appointment %s with malformed times %r-%r',
                getattr(appointment, 'id', None),
                appointment.start_time,
                appointment.end_time,
            )
            continue

        blocking.setdefault(appointment.date, []).append((_to_minutes(start), _to_minutes(end)))

    return blocking


def _empty_day(day: date) -> AvailableSlot:
    return AvailableSlot(
        date=day.isoformat(),
        start_time='',
        end_time='',
        formatted_date=format_date_label(day),
        is_empty=True,
    )


def build_slots(
    availability: WeeklyAvailability,
    appointments: Sequence,
    now: datetime,
    horizon_days: int = config.DEFAULT_HORIZON_DAYS,
) -> list[AvailableSlot]:
    blocking = _blocking_intervals(appointments)
    today = now.date()
    slots: list[AvailableSlot] = []

    for offset in range(horizon_days):
        day = today + timedelta(days=offset)
        date_str = day.isoformat()
        label = format_date_label(day)
        day_availability = availability.for_day(day)

        if not day_availability.enabled or not day_availability.time_slots:
            slots.append(_empty_day(day))
            continue

        booked = blocking.get(date_str, [])
        day_slots: list[AvailableSlot] = []

        for interval_start, interval_end in normalize_intervals(day_availability.time_slots):
            for slot_start, slot_end in partition_interval(interval_start, interval_end):
                starts_at = datetime.combine(day, _to_clock(slot_start), tzinfo=now.tzinfo)
                if starts_at <= now:
                    continue

                if any(overlaps(slot_start, slot_end, booked_start, booked_end) for booked_start, booked_end in booked):
                    continue

                day_slots.append(
                    AvailableSlot(
                        date=date_str,
                        start_time=_to_clock(slot_start).strftime('%H:%M'),
                        end_time=_to_clock(slot_end).strftime('%H:%M'),
                        formatted_date=label,
                        is_empty=False,
                    )
                )

        slots.extend(day_slots or [_empty_day(day)])

    return slots


def compute_available_slots(
    broker_id: str,
    store: DocumentStore,
    clock: Clock | None = None,
    horizon_days: int = config.DEFAULT_HORIZON_DAYS,
) -> list[AvailableSlot]:
    """
    Bookable slots of a broker for the next horizon_days days, starting today.

    Returns an empty list when the broker has no availability document or
    when the store cannot be read.
    """
    clock = clock or SystemClock()

    try:
        availability = store.get_broker_availability(broker_id)
        if availability is None:
            return []

        now = clock.now()
        today = now.date()
        horizon_end = today + timedelta(days=horizon_days)
        appointments = store.list_broker_appointments(broker_id, today.isoformat(), horizon_end.isoformat())
    except StoreError:
        logger.exception('Could not load scheduling data for broker %s', broker_id)
        return []

    return build_slots(availability, appointments, now, horizon_days)
