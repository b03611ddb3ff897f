from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.scheduling.schemas import BlockedDate, BookedAppointment, BookingSettings, BusinessHours
from app.domain.scheduling.time_calculator import (
    calculate_slots,
    generate_time_slots,
    get_closed_reason,
    suggest_alternatives,
)

MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 6)


def _appointment(hour: int, minute: int = 0, duration: int = 60, status: str = "confirmed", groomer_id=None):
    return BookedAppointment(
        id=1,
        scheduled_at=datetime(MONDAY.year, MONDAY.month, MONDAY.day, hour, minute),
        duration_minutes=duration,
        status=status,
        groomer_id=groomer_id,
    )


def _slots(result) -> dict[str, bool]:
    return {slot.time: slot.available for slot in result.time_slots}


def test_generate_time_slots_every_half_hour() -> None:
    slots = generate_time_slots("09:00", "11:00")
    assert slots == ["09:00", "09:30", "10:00", "10:30"]


def test_sunday_is_closed_with_default_settings() -> None:
    result = calculate_slots(SUNDAY, 30, [], BusinessHours(), BookingSettings())
    assert result.is_closed is True
    assert result.time_slots == []
    assert result.reason == "Sundays are blocked for appointments"


def test_closed_business_day_reason_when_not_recurring_blocked() -> None:
    settings = BookingSettings(recurring_blocked_days=[])
    assert get_closed_reason(SUNDAY, BusinessHours(), settings) == "Business is closed on this day"


def test_blocked_date_range_uses_its_reason() -> None:
    settings = BookingSettings(
        blocked_dates=[BlockedDate(date=date(2030, 1, 5), end_date=date(2030, 1, 8), reason="Staff training")]
    )
    result = calculate_slots(MONDAY, 30, [], BusinessHours(), settings)
    assert result.is_closed is True
    assert result.reason == "Staff training"


def test_slot_after_appointment_is_blocked_by_buffer() -> None:
    result = calculate_slots(MONDAY, 30, [_appointment(10)], BusinessHours(), BookingSettings(buffer_minutes=15))
    slots = _slots(result)

    assert slots["10:30"] is False
    # 10:00-11:15 effective interval also covers 11:00
    assert slots["11:00"] is False
    assert slots["11:30"] is True


def test_buffer_is_not_applied_before_existing_appointment() -> None:
    result = calculate_slots(MONDAY, 30, [_appointment(10)], BusinessHours(), BookingSettings(buffer_minutes=15))
    assert _slots(result)["09:30"] is True


def test_booked_count_reports_competing_appointments() -> None:
    result = calculate_slots(MONDAY, 30, [_appointment(10)], BusinessHours(), BookingSettings())
    slot = next(s for s in result.time_slots if s.time == "10:00")
    assert slot.available is False
    assert slot.booked_count == 1


def test_long_service_omits_slots_that_run_past_closing() -> None:
    result = calculate_slots(MONDAY, 120, [], BusinessHours(), BookingSettings())
    times = [slot.time for slot in result.time_slots]

    assert times[0] == "09:00"
    assert times[-1] == "15:00"
    assert "15:30" not in times


def test_cancelled_and_no_show_appointments_do_not_block() -> None:
    appointments = [_appointment(10, status="cancelled"), _appointment(13, status="no_show")]
    result = calculate_slots(MONDAY, 60, appointments, BusinessHours(), BookingSettings())
    assert all(slot.available for slot in result.time_slots)


def test_other_groomer_appointment_does_not_block() -> None:
    result = calculate_slots(
        MONDAY, 30, [_appointment(10, groomer_id=1)], BusinessHours(), BookingSettings(), groomer_id=2
    )
    assert _slots(result)["10:00"] is True


def test_unassigned_appointment_blocks_every_groomer() -> None:
    result = calculate_slots(MONDAY, 30, [_appointment(10)], BusinessHours(), BookingSettings(), groomer_id=2)
    assert _slots(result)["10:00"] is False


def test_booking_window_drops_slots_too_soon() -> None:
    now = datetime(2030, 1, 7, 9, 0)
    result = calculate_slots(MONDAY, 30, [], BusinessHours(), BookingSettings(min_advance_hours=2), now=now)
    times = [slot.time for slot in result.time_slots]

    assert times[0] == "11:00"
    assert "10:30" not in times


def test_booking_window_drops_days_too_far_ahead() -> None:
    now = datetime(2029, 1, 1, 9, 0)
    result = calculate_slots(MONDAY, 30, [], BusinessHours(), BookingSettings(max_advance_days=90), now=now)
    assert result.is_closed is False
    assert result.time_slots == []


def test_non_positive_duration_is_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_slots(MONDAY, 0, [], BusinessHours(), BookingSettings())


def test_suggest_alternatives_orders_by_distance() -> None:
    alternatives = suggest_alternatives(
        MONDAY,
        60,
        [_appointment(10)],
        BusinessHours(),
        BookingSettings(buffer_minutes=15),
        near=datetime(2030, 1, 7, 10, 0),
    )
    assert alternatives == ["09:00", "11:30", "12:00"]


def test_suggest_alternatives_for_a_groomer_ignore_other_groomers() -> None:
    booked = [_appointment(9, groomer_id=1), _appointment(10, groomer_id=2)]

    for_groomer = suggest_alternatives(
        MONDAY, 60, booked, BusinessHours(), BookingSettings(), near=datetime(2030, 1, 7, 10, 0), groomer_id=1
    )
    salon_wide = suggest_alternatives(
        MONDAY, 60, booked, BusinessHours(), BookingSettings(), near=datetime(2030, 1, 7, 10, 0)
    )

    assert for_groomer[0] == "10:30"
    assert "10:30" not in salon_wide
