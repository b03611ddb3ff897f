"""
Booking commit

All inserts into the calendar go through book_appointment(): it takes the
per-date booking lease, re-runs the authoritative availability check and
commits the appointment while the lease is held.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import SlotConflictError
from ...models import Appointment
from ...shared.leases import hold_lease
from ..scheduling.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

BOOKING_LEASE_SECONDS = 30
BOOKING_LEASE_WAIT_SECONDS = 5


def booking_lease_name(scheduled_at: datetime) -> str:
    return f"booking:{scheduled_at.date().isoformat()}"


def make_booking_reference(appointment: Appointment) -> str:
    return f"APT-{datetime.now().year}-{appointment.id:06d}"


async def book_appointment(
    db: Session,
    now: Optional[datetime] = None,
    before_commit: Optional[Callable[[Appointment], None]] = None,
    **appointment_data,
) -> Appointment:
    """
    Insert an appointment if its slot is still free.

    before_commit runs inside the same transaction after the row is flushed;
    raising from it aborts the booking.

    Raises:
        ValidationError: closed date, outside hours or booking window
        SlotConflictError: overlapping appointment, or the date lease is busy
    """
    scheduled_at = appointment_data["scheduled_at"]
    availability = AvailabilityService(db)

    async with hold_lease(
        db,
        booking_lease_name(scheduled_at),
        ttl_seconds=BOOKING_LEASE_SECONDS,
        wait_seconds=BOOKING_LEASE_WAIT_SECONDS,
    ) as acquired:
        if not acquired:
            logger.warning(f"⚠️ Booking lease busy for {scheduled_at.date()}")
            raise SlotConflictError("Another booking for this date is in progress. Please try again.")

        try:
            availability.ensure_bookable(
                scheduled_at,
                appointment_data["duration_minutes"],
                groomer_id=appointment_data.get("groomer_id"),
                now=now,
            )

            appointment = Appointment(**appointment_data)
            db.add(appointment)
            db.flush()
            appointment.booking_reference = make_booking_reference(appointment)

            if before_commit:
                before_commit(appointment)

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(appointment)

    logger.info(f"✅ Booked {appointment.booking_reference} at {scheduled_at.isoformat()}")
    return appointment
