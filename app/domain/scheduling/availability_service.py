"""Availability service - Business logic for slots, booking settings and blocked dates"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError, SlotConflictError, ValidationError
from .conflicts import find_conflicts
from .repository import BOOKING_SETTINGS_KEY, BUSINESS_HOURS_KEY, SchedulingRepository
from .schemas import (
    BlockedDate,
    BlockedDateResult,
    BookedAppointment,
    BookingSettings,
    BusinessHours,
    DayAvailability,
)
from .time_calculator import (
    calculate_slots,
    fits_business_hours,
    get_closed_reason,
    is_within_booking_window,
    suggest_alternatives,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Service layer for availability and booking settings"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_booking_settings(self) -> BookingSettings:
        stored = self.repo.get_setting(self.db, BOOKING_SETTINGS_KEY)
        return BookingSettings(**stored) if stored else BookingSettings()

    def update_booking_settings(self, settings: BookingSettings) -> BookingSettings:
        self.repo.save_setting(self.db, BOOKING_SETTINGS_KEY, settings.model_dump(mode="json"))
        logger.info(
            f"✅ Booking settings updated: buffer={settings.buffer_minutes}m, "
            f"window={settings.min_advance_hours}h-{settings.max_advance_days}d"
        )
        return settings

    def get_business_hours(self) -> BusinessHours:
        stored = self.repo.get_setting(self.db, BUSINESS_HOURS_KEY)
        return BusinessHours(**stored) if stored else BusinessHours()

    def update_business_hours(self, hours: BusinessHours) -> BusinessHours:
        self.repo.save_setting(self.db, BUSINESS_HOURS_KEY, hours.model_dump(mode="json"))
        logger.info("✅ Business hours updated")
        return hours

    def add_blocked_date(self, blocked: BlockedDate) -> BlockedDateResult:
        settings = self.get_booking_settings()

        for existing in settings.blocked_dates:
            if existing.date == blocked.date and existing.end_date == blocked.end_date:
                raise ValidationError("This date is already blocked")

        settings.blocked_dates.append(blocked)
        settings.blocked_dates.sort(key=lambda b: b.date)
        self.update_booking_settings(settings)

        affected = self.repo.count_appointments_between(
            self.db, blocked.date, blocked.end_date or blocked.date
        )
        if affected:
            logger.warning(f"⚠️ Blocked {blocked.date} has {affected} active appointment(s) inside it")

        return BlockedDateResult(blocked_dates=settings.blocked_dates, affected_appointments=affected)

    def remove_blocked_date(self, day: date) -> BlockedDateResult:
        settings = self.get_booking_settings()
        remaining = [b for b in settings.blocked_dates if b.date != day]
        if len(remaining) == len(settings.blocked_dates):
            raise NotFoundError("Blocked date not found")

        settings.blocked_dates = remaining
        self.update_booking_settings(settings)
        return BlockedDateResult(blocked_dates=remaining)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def resolve_duration(self, service_id: Optional[int], duration_minutes: Optional[int]) -> int:
        """Duration from the service when given, else the explicit minutes"""
        if service_id is not None:
            service = self.repo.get_service(self.db, service_id)
            if not service:
                raise NotFoundError("Service not found")
            return service.duration_minutes
        if duration_minutes is None:
            raise ValidationError("Either service_id or duration_minutes is required")
        if duration_minutes <= 0:
            raise ValidationError("Invalid duration_minutes. Must be a positive number")
        return duration_minutes

    def booked_appointments(self, day: date) -> list[BookedAppointment]:
        rows = self.repo.get_appointments_for_date(self.db, day)
        return [BookedAppointment.model_validate(row) for row in rows]

    def get_day_availability(
        self,
        day: date,
        duration_minutes: int,
        now: Optional[datetime] = None,
        groomer_id: Optional[int] = None,
    ) -> DayAvailability:
        return calculate_slots(
            day,
            duration_minutes,
            self.booked_appointments(day),
            self.get_business_hours(),
            self.get_booking_settings(),
            now=now,
            groomer_id=groomer_id,
        )

    def ensure_bookable(
        self,
        start: datetime,
        duration_minutes: int,
        groomer_id: Optional[int] = None,
        now: Optional[datetime] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        """
        Authoritative pre-commit check for a booking.

        Raises ValidationError when the salon is closed or the time falls outside
        opening hours or the booking window, and SlotConflictError when the
        interval overlaps an existing appointment.
        """
        settings = self.get_booking_settings()
        hours = self.get_business_hours()

        closed_reason = get_closed_reason(start.date(), hours, settings)
        if closed_reason:
            raise ValidationError(closed_reason, code="DATE_UNAVAILABLE")

        if not fits_business_hours(start, duration_minutes, hours):
            raise ValidationError("Appointment must fit within business hours", code="OUTSIDE_BUSINESS_HOURS")

        if now is not None and not is_within_booking_window(start, now, settings):
            raise ValidationError(
                f"Appointments must be booked between {settings.min_advance_hours} hours "
                f"and {settings.max_advance_days} days in advance",
                code="OUTSIDE_BOOKING_WINDOW",
            )

        booked = self.booked_appointments(start.date())
        conflicts = find_conflicts(
            start,
            duration_minutes,
            booked,
            settings.buffer_minutes,
            groomer_id=groomer_id,
            exclude_id=exclude_appointment_id,
        )
        if conflicts:
            alternatives = suggest_alternatives(
                start.date(), duration_minutes, booked, hours, settings, near=start, groomer_id=groomer_id
            )
            logger.warning(
                f"⚠️ Slot conflict at {start.isoformat()} ({len(conflicts)} overlapping appointment(s))"
            )
            raise SlotConflictError(
                "This time slot is no longer available. Please choose another time.",
                alternative_times=alternatives,
            )
