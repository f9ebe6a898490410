# src/domain/availability.py

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Protocol

from src.domain.exceptions import ValidationError
from src.domain.state_machine import BookingStatus

OPENING_TIME = time(8, 0)
CLOSING_TIME = time(23, 0)
MIN_DURATION = timedelta(hours=2)
MAX_DURATION = timedelta(hours=16)
MAX_DAYS_AHEAD = 365


class ScheduledBooking(Protocol):
    event_date: date
    start_time: time
    end_time: time
    status: BookingStatus


@dataclass(frozen=True)
class TimeSlot:
    start_time: time
    end_time: time
    is_available: bool


def intervals_overlap(
    existing_start: time,
    existing_end: time,
    new_start: time,
    new_end: time,
) -> bool:
    """
    The three [start, end) overlap tests: new start inside existing,
    new end inside existing, or new interval containing existing.
    """
    return (
        (existing_start <= new_start < existing_end)
        or (existing_start < new_end <= existing_end)
        or (new_start <= existing_start and existing_end <= new_end)
    )


def conflicts_with(
    existing: ScheduledBooking,
    event_date: date,
    start_time: time,
    end_time: time,
) -> bool:
    if existing.status is BookingStatus.CANCELLED:
        return False
    if existing.event_date != event_date:
        return False
    return intervals_overlap(existing.start_time, existing.end_time, start_time, end_time)


def find_conflicts(
    bookings: Iterable[ScheduledBooking],
    event_date: date,
    start_time: time,
    end_time: time,
) -> list:
    return [b for b in bookings if conflicts_with(b, event_date, start_time, end_time)]


def validate_booking_window(
    event_date: date,
    start_time: time,
    end_time: time,
    today: Optional[date] = None,
) -> None:
    """
    Rejects event windows the halls cannot host: past dates, dates more
    than a year out, inverted or out-of-hours times, and durations outside
    2 to 16 hours.
    """
    today = today or datetime.now(timezone.utc).date()

    if event_date < today:
        raise ValidationError("Event date cannot be in the past")
    if event_date > today + timedelta(days=MAX_DAYS_AHEAD):
        raise ValidationError("Event date cannot be more than 1 year in advance")
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")

    duration = datetime.combine(event_date, end_time) - datetime.combine(event_date, start_time)
    if duration < MIN_DURATION:
        raise ValidationError("Minimum booking duration is 2 hours")
    if duration > MAX_DURATION:
        raise ValidationError("Maximum booking duration is 16 hours")
    if start_time < OPENING_TIME or end_time > CLOSING_TIME:
        raise ValidationError(
            f"Hall operating hours are from {OPENING_TIME:%H:%M} to {CLOSING_TIME:%H:%M}"
        )


def compute_time_slots(bookings: Iterable[ScheduledBooking]) -> list[TimeSlot]:
    """Free and booked slots between opening and closing for one day."""
    taken = sorted(
        (b for b in bookings if b.status is not BookingStatus.CANCELLED),
        key=lambda b: b.start_time,
    )
    if not taken:
        return [TimeSlot(OPENING_TIME, CLOSING_TIME, True)]

    slots = []
    cursor = OPENING_TIME
    for booking in taken:
        if cursor < booking.start_time:
            slots.append(TimeSlot(cursor, booking.start_time, True))
        slots.append(TimeSlot(booking.start_time, booking.end_time, False))
        cursor = max(cursor, booking.end_time)

    if cursor < CLOSING_TIME:
        slots.append(TimeSlot(cursor, CLOSING_TIME, True))
    return slots
