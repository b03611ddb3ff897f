from __future__ import annotations

from datetime import datetime

from app.domain.scheduling.conflicts import find_conflicts, has_conflict, intervals_overlap
from app.domain.scheduling.schemas import BookedAppointment


def _booked(apt_id: int, hour: int, minute: int = 0, duration: int = 60, **kwargs) -> BookedAppointment:
    return BookedAppointment(
        id=apt_id,
        scheduled_at=datetime(2030, 1, 7, hour, minute),
        duration_minutes=duration,
        status=kwargs.pop("status", "confirmed"),
        **kwargs,
    )


def test_touching_intervals_do_not_overlap() -> None:
    assert not intervals_overlap(
        datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), datetime(2030, 1, 7, 10), datetime(2030, 1, 7, 11)
    )


def test_partial_overlap_is_a_conflict() -> None:
    assert intervals_overlap(
        datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10, 1), datetime(2030, 1, 7, 10), datetime(2030, 1, 7, 11)
    )


def test_candidate_inside_buffer_conflicts() -> None:
    booked = [_booked(1, 10)]
    assert has_conflict(datetime(2030, 1, 7, 11, 0), 30, booked, buffer_minutes=15)
    assert not has_conflict(datetime(2030, 1, 7, 11, 15), 30, booked, buffer_minutes=15)


def test_find_conflicts_returns_every_overlapping_appointment() -> None:
    booked = [_booked(1, 9), _booked(2, 10), _booked(3, 14)]
    conflicts = find_conflicts(datetime(2030, 1, 7, 9, 30), 60, booked, buffer_minutes=0)
    assert [c.id for c in conflicts] == [1, 2]


def test_exclude_id_skips_the_appointment_being_moved() -> None:
    booked = [_booked(1, 10)]
    assert not has_conflict(datetime(2030, 1, 7, 10, 30), 30, booked, buffer_minutes=15, exclude_id=1)


def test_inactive_statuses_are_ignored() -> None:
    booked = [_booked(1, 10, status="cancelled"), _booked(2, 10, status="no_show")]
    assert not has_conflict(datetime(2030, 1, 7, 10), 60, booked, buffer_minutes=15)


def test_groomer_resources() -> None:
    booked = [_booked(1, 10, groomer_id=1)]
    assert not has_conflict(datetime(2030, 1, 7, 10), 60, booked, 15, groomer_id=2)
    assert has_conflict(datetime(2030, 1, 7, 10), 60, booked, 15, groomer_id=1)
    # An unassigned candidate needs the whole salon
    assert has_conflict(datetime(2030, 1, 7, 10), 60, booked, 15)
