"""
Booking conflict checker

An existing appointment occupies [scheduled_at, scheduled_at + duration + buffer).
A candidate occupies [start, start + duration). The buffer is only appended
after existing appointments.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from ...models import NON_BLOCKING_APPOINTMENT_STATUSES
from .schemas import BookedAppointment


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap"""
    return start_a < end_b and end_a > start_b


def effective_interval(appointment: BookedAppointment, buffer_minutes: int) -> tuple[datetime, datetime]:
    end = appointment.scheduled_at + timedelta(minutes=appointment.duration_minutes + buffer_minutes)
    return appointment.scheduled_at, end


def _shares_resource(appointment: BookedAppointment, groomer_id: Optional[int]) -> bool:
    # Unassigned appointments hold the whole salon
    if groomer_id is None or appointment.groomer_id is None:
        return True
    return appointment.groomer_id == groomer_id


def find_conflicts(
    start: datetime,
    duration_minutes: int,
    appointments: Iterable[BookedAppointment],
    buffer_minutes: int,
    groomer_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> list[BookedAppointment]:
    """Return the appointments the candidate interval collides with"""
    end = start + timedelta(minutes=duration_minutes)
    conflicts = []
    for appointment in appointments:
        if appointment.status in NON_BLOCKING_APPOINTMENT_STATUSES:
            continue
        if exclude_id is not None and appointment.id == exclude_id:
            continue
        if not _shares_resource(appointment, groomer_id):
            continue
        apt_start, apt_end = effective_interval(appointment, buffer_minutes)
        if intervals_overlap(apt_start, apt_end, start, end):
            conflicts.append(appointment)
    return conflicts


def has_conflict(
    start: datetime,
    duration_minutes: int,
    appointments: Iterable[BookedAppointment],
    buffer_minutes: int,
    groomer_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> bool:
    return bool(find_conflicts(start, duration_minutes, appointments, buffer_minutes, groomer_id, exclude_id))
