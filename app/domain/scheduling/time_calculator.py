"""
Slot calculator - turns business hours, booking settings and existing
appointments into the list of bookable start times for one day.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time
from typing import Optional

from .conflicts import find_conflicts
from .schemas import (
    BookedAppointment,
    BookingSettings,
    BusinessHours,
    DayAvailability,
    TimeSlot,
)

logger = logging.getLogger(__name__)

SLOT_INTERVAL_MINUTES = 30

# Display names indexed by recurring_blocked_days numbering (0 = Sunday)
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def slot_start(day: date, slot_time: str) -> datetime:
    minutes = time_to_minutes(slot_time)
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def generate_time_slots(open_time: str, close_time: str, interval: int = SLOT_INTERVAL_MINUTES) -> list[str]:
    """Start times from opening (inclusive) to closing (exclusive)"""
    slots = []
    minutes = time_to_minutes(open_time)
    close_minutes = time_to_minutes(close_time)
    while minutes < close_minutes:
        slots.append(minutes_to_time(minutes))
        minutes += interval
    return slots


def get_closed_reason(day: date, business_hours: BusinessHours, settings: BookingSettings) -> Optional[str]:
    """Return why the salon is closed on `day`, or None if it is open"""
    weekday = sunday_based_weekday(day)
    if weekday in settings.recurring_blocked_days:
        return f"{DAY_NAMES[weekday]}s are blocked for appointments"

    for blocked in settings.blocked_dates:
        if blocked.covers(day):
            return blocked.reason or "This date is blocked for appointments"

    if not business_hours.for_date(day).is_open:
        return "Business is closed on this day"

    return None


def is_within_booking_window(start: datetime, now: datetime, settings: BookingSettings) -> bool:
    hours_until = (start - now).total_seconds() / 3600
    return settings.min_advance_hours <= hours_until <= settings.max_advance_days * 24


def fits_business_hours(start: datetime, duration_minutes: int, business_hours: BusinessHours) -> bool:
    hours = business_hours.for_date(start.date())
    if not hours.is_open:
        return False
    start_minutes = start.hour * 60 + start.minute
    return (
        time_to_minutes(hours.open) <= start_minutes
        and start_minutes + duration_minutes <= time_to_minutes(hours.close)
    )


def calculate_slots(
    day: date,
    duration_minutes: int,
    appointments: Iterable[BookedAppointment],
    business_hours: BusinessHours,
    settings: BookingSettings,
    now: Optional[datetime] = None,
    groomer_id: Optional[int] = None,
) -> DayAvailability:
    """
    Build the slot list for `day`.

    Slots are generated every 30 minutes between opening and closing. A slot is
    listed only if the requested duration still fits before closing; it is
    available when it overlaps no existing appointment plus its buffer. When
    `now` is given, slots outside the booking window are dropped.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    closed_reason = get_closed_reason(day, business_hours, settings)
    if closed_reason:
        return DayAvailability(date=day.isoformat(), is_closed=True, reason=closed_reason, time_slots=[])

    hours = business_hours.for_date(day)
    close_minutes = time_to_minutes(hours.close)
    appointments = list(appointments)

    slots = []
    for slot_time in generate_time_slots(hours.open, hours.close):
        if time_to_minutes(slot_time) + duration_minutes > close_minutes:
            continue

        start = slot_start(day, slot_time)
        if now is not None and not is_within_booking_window(start, now, settings):
            continue

        conflicts = find_conflicts(
            start, duration_minutes, appointments, settings.buffer_minutes, groomer_id=groomer_id
        )
        slots.append(TimeSlot(time=slot_time, available=not conflicts, booked_count=len(conflicts)))

    return DayAvailability(
        date=day.isoformat(),
        is_closed=False,
        business_hours={"start": hours.open, "end": hours.close},
        time_slots=slots,
    )


def suggest_alternatives(
    day: date,
    duration_minutes: int,
    appointments: Iterable[BookedAppointment],
    business_hours: BusinessHours,
    settings: BookingSettings,
    near: Optional[datetime] = None,
    limit: int = 3,
    groomer_id: Optional[int] = None,
) -> list[str]:
    """Available start times on `day`, nearest to `near` first"""
    availability = calculate_slots(
        day, duration_minutes, appointments, business_hours, settings, groomer_id=groomer_id
    )
    free = [slot.time for slot in availability.time_slots if slot.available]
    if near is not None:
        target = near.hour * 60 + near.minute
        free.sort(key=lambda t: abs(time_to_minutes(t) - target))
    return free[:limit]
