import logging
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from brokerhub.core.clock import FixedClock
from brokerhub.schemas.availability import DayAvailability, TimeSlot, WeeklyAvailability
from brokerhub.services.document_store import StoreError
from brokerhub.services.slot_generator import (
    compute_available_slots,
    format_date_label,
    normalize_intervals,
    overlaps,
    partition_interval,
)

BROKER_ID = 'broker-1'
# 2026-01-05 is a Monday, 2026-01-07 a Wednesday.
WEDNESDAY_MORNING = datetime(2026, 1, 7, 8, 0)


class FakeStore:
    def __init__(self, availability=None, appointments=(), error=None):
        self.availability = availability
        self.appointments = list(appointments)
        self.error = error
        self.requested_ranges = []

    def get_broker_availability(self, broker_id):
        if self.error:
            raise self.error
        return self.availability

    def list_broker_appointments(self, broker_id, start_date, end_date):
        self.requested_ranges.append((broker_id, start_date, end_date))
        return [
            appointment
            for appointment in self.appointments
            if appointment.broker_id == broker_id and start_date <= appointment.date <= end_date
        ]


def _monday_only(*intervals: tuple[str, str]) -> WeeklyAvailability:
    return WeeklyAvailability(
        monday=DayAvailability(
            enabled=True,
            time_slots=[TimeSlot(start=start, end=end) for start, end in intervals],
        ),
    )


def _appointment(day: str, start: str, end: str, status: str = 'confirmed'):
    return SimpleNamespace(
        id=f'{day}-{start}',
        broker_id=BROKER_ID,
        date=day,
        start_time=start,
        end_time=end,
        status=status,
    )


def _bookable(slots, day: str | None = None):
    return [
        (slot.date, slot.start_time, slot.end_time)
        for slot in slots
        if not slot.is_empty and (day is None or slot.date == day)
    ]


def test_monday_interval_is_split_into_half_hour_slots() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '10:00')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert _bookable(slots) == [
        ('2026-01-12', '09:00', '09:30'),
        ('2026-01-12', '09:30', '10:00'),
        ('2026-01-19', '09:00', '09:30'),
        ('2026-01-19', '09:30', '10:00'),
    ]
    empty_days = [slot.date for slot in slots if slot.is_empty]
    assert len(empty_days) == 12
    assert all(slot.start_time == '' and slot.end_time == '' for slot in slots if slot.is_empty)


def test_booked_appointment_removes_overlapping_slot() -> None:
    store = FakeStore(
        availability=_monday_only(('09:00', '10:00')),
        appointments=[_appointment('2026-01-12', '09:00', '09:30')],
    )

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert _bookable(slots, '2026-01-12') == [('2026-01-12', '09:30', '10:00')]
    assert len(_bookable(slots, '2026-01-19')) == 2


def test_broker_without_availability_gets_no_slots() -> None:
    store = FakeStore(availability=None)

    assert compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING)) == []
    assert compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING), horizon_days=60) == []
    assert store.requested_ranges == []


def test_partial_trailing_interval_is_dropped() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '09:20')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert _bookable(slots) == []
    assert len(slots) == 14


def test_slot_that_already_started_today_is_excluded() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '10:00')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(datetime(2026, 1, 5, 9, 15)))

    assert _bookable(slots, '2026-01-05') == [('2026-01-05', '09:30', '10:00')]


def test_slot_starting_exactly_now_is_excluded() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '10:00')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(datetime(2026, 1, 5, 9, 30)))

    assert _bookable(slots, '2026-01-05') == []
    assert [slot.is_empty for slot in slots if slot.date == '2026-01-05'] == [True]


def test_every_day_of_the_horizon_is_represented() -> None:
    availability = WeeklyAvailability(
        monday=DayAvailability(enabled=True, time_slots=[TimeSlot(start='09:00', end='12:00')]),
        tuesday=DayAvailability(enabled=True, time_slots=[]),
        friday=DayAvailability(enabled=False, time_slots=[TimeSlot(start='09:00', end='12:00')]),
    )
    store = FakeStore(availability=availability)

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING), horizon_days=21)

    expected_days = [(date(2026, 1, 7) + timedelta(days=offset)).isoformat() for offset in range(21)]
    assert sorted({slot.date for slot in slots}) == expected_days
    assert [slot.date for slot in slots] == sorted(slot.date for slot in slots)
    assert len(slots) >= 21


def test_disabled_weekday_only_yields_empty_markers() -> None:
    availability = WeeklyAvailability(
        friday=DayAvailability(enabled=False, time_slots=[TimeSlot(start='09:00', end='17:00')]),
    )
    store = FakeStore(availability=availability)

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    fridays = [slot for slot in slots if date.fromisoformat(slot.date).weekday() == 4]
    assert len(fridays) == 2
    assert all(slot.is_empty for slot in fridays)


def test_non_empty_slots_are_thirty_minutes_future_and_free() -> None:
    now = datetime(2026, 1, 5, 11, 10)
    appointments = [
        _appointment('2026-01-05', '13:00', '14:00'),
        _appointment('2026-01-12', '09:15', '09:45'),
    ]
    store = FakeStore(availability=_monday_only(('09:00', '17:00')), appointments=appointments)

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(now))

    bookable = [slot for slot in slots if not slot.is_empty]
    assert bookable
    for slot in bookable:
        start = datetime.fromisoformat(f'{slot.date}T{slot.start_time}')
        end = datetime.fromisoformat(f'{slot.date}T{slot.end_time}')
        assert end - start == timedelta(minutes=30)
        assert start > now
        for appointment in appointments:
            if appointment.date == slot.date:
                booked_start = datetime.fromisoformat(f'{appointment.date}T{appointment.start_time}')
                booked_end = datetime.fromisoformat(f'{appointment.date}T{appointment.end_time}')
                assert not (
                    booked_start <= start < booked_end
                    or booked_start <= end < booked_end
                    or (start <= booked_start and end >= booked_end)
                )


def test_slot_ending_when_appointment_starts_is_blocked() -> None:
    store = FakeStore(
        availability=_monday_only(('09:00', '11:00')),
        appointments=[_appointment('2026-01-12', '09:30', '10:30')],
    )

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert ('2026-01-12', '09:00', '09:30') not in _bookable(slots)
    assert _bookable(slots, '2026-01-12') == [('2026-01-12', '10:30', '11:00')]


def test_cancelled_appointment_does_not_block_its_slot() -> None:
    store = FakeStore(
        availability=_monday_only(('09:00', '10:00')),
        appointments=[_appointment('2026-01-12', '09:00', '09:30', status='cancelled')],
    )

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert len(_bookable(slots, '2026-01-12')) == 2


def test_appointments_are_requested_for_the_inclusive_horizon() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '10:00')))

    compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING), horizon_days=14)

    assert store.requested_ranges == [(BROKER_ID, '2026-01-07', '2026-01-21')]


def test_repeated_calls_are_identical() -> None:
    store = FakeStore(
        availability=_monday_only(('09:00', '12:00'), ('14:00', '15:30')),
        appointments=[_appointment('2026-01-12', '10:00', '10:30')],
    )
    clock = FixedClock(WEDNESDAY_MORNING)

    assert compute_available_slots(BROKER_ID, store, clock=clock) == compute_available_slots(BROKER_ID, store, clock=clock)


def test_store_failure_degrades_to_no_slots(caplog: pytest.LogCaptureFixture) -> None:
    store = FakeStore(error=StoreError('connection refused'))

    with caplog.at_level(logging.ERROR, logger='brokerhub.services.slot_generator'):
        slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert slots == []
    assert 'broker-1' in caplog.text


def test_malformed_interval_is_skipped() -> None:
    store = FakeStore(availability=_monday_only(('9h', '10:00'), ('11:00', '10:00'), ('14:00', '15:00')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert _bookable(slots, '2026-01-12') == [
        ('2026-01-12', '14:00', '14:30'),
        ('2026-01-12', '14:30', '15:00'),
    ]


def test_unsorted_overlapping_intervals_are_merged() -> None:
    store = FakeStore(availability=_monday_only(('10:00', '11:00'), ('09:00', '10:30')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert _bookable(slots, '2026-01-12') == [
        ('2026-01-12', '09:00', '09:30'),
        ('2026-01-12', '09:30', '10:00'),
        ('2026-01-12', '10:00', '10:30'),
        ('2026-01-12', '10:30', '11:00'),
    ]


def test_timezone_aware_clock_is_supported() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '10:00')))
    now = datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc)

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(now))

    assert _bookable(slots, '2026-01-05') == [('2026-01-05', '09:30', '10:00')]


def test_slots_carry_french_date_labels() -> None:
    store = FakeStore(availability=_monday_only(('09:00', '09:30')))

    slots = compute_available_slots(BROKER_ID, store, clock=FixedClock(WEDNESDAY_MORNING))

    assert slots[0].formatted_date == 'mercredi 07 janvier'
    assert [slot.formatted_date for slot in slots if not slot.is_empty][0] == 'lundi 12 janvier'


@pytest.mark.parametrize(
    ('day', 'label'),
    [
        (date(2026, 8, 15), 'samedi 15 août'),
        (date(2026, 2, 1), 'dimanche 01 février'),
        (date(2026, 12, 31), 'jeudi 31 décembre'),
    ],
)
def test_format_date_label(day: date, label: str) -> None:
    assert format_date_label(day) == label


def test_partition_interval_drops_remainder() -> None:
    assert list(partition_interval(540, 640)) == [(540, 570), (570, 600), (600, 630)]
    assert list(partition_interval(540, 560)) == []


def test_normalize_intervals_keeps_touching_intervals_apart() -> None:
    intervals = normalize_intervals([
        TimeSlot(start='09:45', end='10:30'),
        TimeSlot(start='09:00', end='09:45'),
    ])

    assert intervals == [(540, 585), (585, 630)]


@pytest.mark.parametrize(
    ('slot', 'booked', 'expected'),
    [
        ((540, 570), (540, 570), True),
        ((540, 570), (555, 600), True),
        ((540, 570), (510, 555), True),
        ((540, 600), (550, 560), True),
        ((510, 540), (540, 570), True),
        ((570, 600), (540, 570), False),
    ],
)
def test_overlaps(slot: tuple[int, int], booked: tuple[int, int], expected: bool) -> None:
    assert overlaps(*slot, *booked) is expected
