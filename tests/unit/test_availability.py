# tests/unit/test_availability.py

from dataclasses import dataclass
from datetime import date, time

import pytest

from src.domain.availability import (
    compute_time_slots,
    find_conflicts,
    intervals_overlap,
    validate_booking_window,
)
from src.domain.exceptions import ValidationError
from src.domain.state_machine import BookingStatus

TODAY = date(2026, 3, 2)
EVENT_DAY = date(2026, 3, 10)


@dataclass
class Slot:
    event_date: date
    start_time: time
    end_time: time
    status: BookingStatus = BookingStatus.PENDING


# ---------------------
# OVERLAP
# ---------------------

def test_new_start_inside_existing():
    assert intervals_overlap(time(10), time(14), time(13), time(16))


def test_new_end_inside_existing():
    assert intervals_overlap(time(10), time(14), time(8), time(11))


def test_new_window_encloses_existing():
    assert intervals_overlap(time(10), time(14), time(9), time(15))


def test_back_to_back_windows_do_not_overlap():
    assert not intervals_overlap(time(10), time(14), time(14), time(18))
    assert not intervals_overlap(time(10), time(14), time(8), time(10))


def test_cancelled_and_other_days_are_ignored():
    bookings = [
        Slot(EVENT_DAY, time(10), time(14), BookingStatus.CANCELLED),
        Slot(date(2026, 3, 11), time(10), time(14)),
        Slot(EVENT_DAY, time(12), time(16), BookingStatus.CONFIRMED),
    ]

    conflicts = find_conflicts(bookings, EVENT_DAY, time(11), time(13))

    assert conflicts == [bookings[2]]


# ---------------------
# BOOKING WINDOW
# ---------------------

def test_valid_window_passes():
    validate_booking_window(EVENT_DAY, time(18), time(22), today=TODAY)


@pytest.mark.parametrize(
    "event_date, start, end, message",
    [
        (date(2026, 3, 1), time(18), time(22), "past"),
        (date(2027, 3, 10), time(18), time(22), "1 year"),
        (EVENT_DAY, time(22), time(18), "before end"),
        (EVENT_DAY, time(18), time(19), "Minimum"),
        (EVENT_DAY, time(7), time(23, 30), "Maximum"),
        (EVENT_DAY, time(7), time(10), "operating hours"),
    ],
)
def test_invalid_windows_are_rejected(event_date, start, end, message):
    with pytest.raises(ValidationError, match=message):
        validate_booking_window(event_date, start, end, today=TODAY)


def test_full_operating_day_is_allowed():
    # 08:00 to 23:00 is 15 hours, within the 16 hour cap.
    validate_booking_window(EVENT_DAY, time(8), time(23), today=TODAY)


# ---------------------
# TIME SLOTS
# ---------------------

def test_empty_day_is_one_free_slot():
    slots = compute_time_slots([])

    assert len(slots) == 1
    assert (slots[0].start_time, slots[0].end_time, slots[0].is_available) == (time(8), time(23), True)


def test_slots_split_around_bookings():
    slots = compute_time_slots([Slot(EVENT_DAY, time(12), time(16))])

    assert [(s.start_time, s.end_time, s.is_available) for s in slots] == [
        (time(8), time(12), True),
        (time(12), time(16), False),
        (time(16), time(23), True),
    ]
