"""Appointment service - Booking and status lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ConcurrentUpdateError, NotFoundError, ValidationError
from ...models import Appointment
from ...shared.transitions import transition_status
from ..notifications.service import NotificationService
from ..waitlist.schemas import WaitlistEntryResponse
from ..waitlist.service import WaitlistService, display_date, display_time
from .booking import book_appointment
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate, StatusChangeResult

logger = logging.getLogger(__name__)

# current status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("checked_in", "cancelled", "no_show"),
    "checked_in": ("in_progress",),
    "in_progress": ("completed",),
    "completed": (),
    "cancelled": (),
    "no_show": (),
}


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.repo = AppointmentRepository()
        self._notifications = notifications

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self.db)
        return self._notifications

    async def create_appointment(self, data: AppointmentCreate, now: Optional[datetime] = None) -> Appointment:
        """Book a customer appointment after validating the booking window and conflicts"""
        logger.info(f"📥 Booking request for customer {data.customer_id} at {data.scheduled_at.isoformat()}")

        customer = self.repo.get_customer(self.db, data.customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        pet = self.repo.get_pet(self.db, data.pet_id, data.customer_id)
        if not pet:
            raise NotFoundError("Pet not found")
        service = self.repo.get_service(self.db, data.service_id)
        if not service:
            raise NotFoundError("Service not found")

        # Stored as salon wall-clock time
        scheduled_at = data.scheduled_at.replace(tzinfo=None, second=0, microsecond=0)

        appointment = await book_appointment(
            self.db,
            now=now or datetime.now(),
            customer_id=customer.id,
            pet_id=pet.id,
            service_id=service.id,
            groomer_id=data.groomer_id,
            scheduled_at=scheduled_at,
            duration_minutes=service.duration_minutes,
            status="pending",
            notes=data.notes,
        )

        await self._notify(
            "booking_confirmation",
            appointment,
            {
                "customer_name": customer.first_name,
                "pet_name": pet.name,
                "service_name": service.name,
                "appointment_date": display_date(scheduled_at.date()),
                "appointment_time": display_time(scheduled_at.strftime("%H:%M")),
                "booking_reference": appointment.booking_reference,
            },
        )
        return appointment

    async def update_status(
        self, appointment_id: int, data: AppointmentStatusUpdate, now: Optional[datetime] = None
    ) -> StatusChangeResult:
        """
        Apply a lifecycle transition with compare-and-set.

        Cancelling an appointment that has not started yet hands the freed slot
        to the waitlist matcher and returns the matching entries.
        """
        now = now or datetime.now()
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")

        previous = appointment.status
        if data.status not in ALLOWED_TRANSITIONS.get(previous, ()):
            raise ValidationError(
                f"Cannot change appointment status from {previous} to {data.status}",
                code="INVALID_TRANSITION",
            )

        changes = {}
        if data.status == "cancelled":
            changes["cancelled_at"] = datetime.utcnow()
            if data.reason:
                changes["notes"] = f"{appointment.notes}\n{data.reason}" if appointment.notes else data.reason

        if not transition_status(self.db, Appointment, appointment_id, previous, data.status, **changes):
            raise ConcurrentUpdateError("Appointment was updated by another request. Please refresh.")

        appointment = self.repo.get_appointment(self.db, appointment_id)
        logger.info(f"✅ Appointment {appointment_id}: {previous} -> {data.status}")

        matches = []
        if data.status == "cancelled" and appointment.scheduled_at > now:
            matches = WaitlistService(self.db, notifications=self._notifications).match(
                appointment.service_id,
                appointment.scheduled_at.date(),
                appointment.scheduled_at.strftime("%H:%M"),
            )

        await self._notify(
            f"appointment_status_{data.status}",
            appointment,
            {
                "customer_name": appointment.customer.first_name,
                "pet_name": appointment.pet.name,
                "appointment_date": display_date(appointment.scheduled_at.date()),
                "appointment_time": display_time(appointment.scheduled_at.strftime("%H:%M")),
                "status": data.status.replace("_", " "),
                "booking_reference": appointment.booking_reference,
            },
        )

        return StatusChangeResult(
            appointment=AppointmentResponse.model_validate(appointment),
            previous_status=previous,
            waitlist_matches=[WaitlistEntryResponse.model_validate(e) for e in matches],
        )

    async def _notify(self, notification_type: str, appointment: Appointment, template_data: dict) -> None:
        """Best effort; delivery problems are logged, never raised to the caller"""
        try:
            await self.notifications.notify_customer(notification_type, appointment.customer, template_data)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ {notification_type} for appointment {appointment.id} failed: {e}")
