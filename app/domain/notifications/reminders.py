"""
Scheduled reminder sends

Appointment reminders go out 23-25 hours before the appointment, retention
reminders once a pet is overdue for its next groom. Both skip customers who
already received the same notification inside the dedup window.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ... import config
from ...models import Appointment, Customer, Pet
from .schemas import NotificationMessage
from .service import NotificationService

logger = logging.getLogger(__name__)

APPOINTMENT_REMINDER = "appointment_reminder"
RETENTION_REMINDER = "retention_reminder"

REMINDER_WINDOW_START = timedelta(hours=23)
REMINDER_WINDOW_END = timedelta(hours=25)
REMINDER_DEDUP_WINDOW = timedelta(hours=24)
RETENTION_DEDUP_WINDOW = timedelta(days=7)
DEFAULT_GROOMING_FREQUENCY_WEEKS = 8


def _summary(started: float, processed: int, sent: int, failed: int, skipped: int) -> dict:
    return {
        "success": True,
        "processed": processed,
        "sent": sent,
        "failed": failed,
        "skipped": skipped,
        "duration_ms": int((time.time() - started) * 1000),
        "timestamp": datetime.utcnow().isoformat(),
    }


def _customer_name(customer: Customer) -> str:
    return customer.first_name or "there"


async def send_appointment_reminders(
    db: Session,
    notifications: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> dict:
    started = time.time()
    notifications = notifications or NotificationService(db)
    now = now or datetime.now()

    appointments = (
        db.query(Appointment)
        .options(joinedload(Appointment.customer), joinedload(Appointment.pet), joinedload(Appointment.service))
        .filter(
            Appointment.status.in_(("pending", "confirmed")),
            Appointment.scheduled_at >= now + REMINDER_WINDOW_START,
            Appointment.scheduled_at <= now + REMINDER_WINDOW_END,
        )
        .order_by(Appointment.scheduled_at.asc())
        .all()
    )
    logger.info(f"⏰ {len(appointments)} appointment(s) need reminders")

    sent = failed = skipped = 0
    for appointment in appointments:
        customer = appointment.customer
        if customer.phone:
            channel, recipient = "sms", customer.phone
        elif customer.email:
            channel, recipient = "email", customer.email
        else:
            logger.warning(f"⚠️ Customer {customer.id} has no phone or email, skipping reminder")
            skipped += 1
            continue

        if notifications.was_recently_sent(customer.id, APPOINTMENT_REMINDER, channel, REMINDER_DEDUP_WINDOW):
            skipped += 1
            continue

        result = await notifications.send(
            NotificationMessage(
                type=APPOINTMENT_REMINDER,
                channel=channel,
                recipient=recipient,
                customer_id=customer.id,
                template_data={
                    "customer_name": _customer_name(customer),
                    "pet_name": appointment.pet.name,
                    "service_name": appointment.service.name,
                    "appointment_date": appointment.scheduled_at.strftime("%A, %B %-d"),
                    "appointment_time": appointment.scheduled_at.strftime("%-I:%M %p"),
                    "booking_reference": appointment.booking_reference,
                },
            )
        )
        if result.success:
            sent += 1
        elif result.skipped:
            skipped += 1
        else:
            failed += 1

    logger.info(f"✅ Appointment reminders: sent={sent} failed={failed} skipped={skipped}")
    return _summary(started, len(appointments), sent, failed, skipped)


async def send_retention_reminders(
    db: Session,
    notifications: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> dict:
    started = time.time()
    notifications = notifications or NotificationService(db)
    now = now or datetime.now()

    last_groom = (
        db.query(Appointment.pet_id, func.max(Appointment.scheduled_at).label("last_at"))
        .filter(Appointment.status == "completed")
        .group_by(Appointment.pet_id)
        .subquery()
    )
    rows = (
        db.query(Pet, last_groom.c.last_at)
        .join(last_groom, last_groom.c.pet_id == Pet.id)
        .options(joinedload(Pet.owner))
        .filter(Pet.is_active.is_(True))
        .all()
    )

    processed = sent = failed = skipped = 0
    for pet, last_at in rows:
        weeks = pet.grooming_frequency_weeks or DEFAULT_GROOMING_FREQUENCY_WEEKS
        if last_at + timedelta(weeks=weeks) > now:
            continue

        processed += 1
        owner = pet.owner
        if owner.marketing_opt_out:
            skipped += 1
            continue

        weeks_since = (now - last_at).days // 7
        template_data = {
            "customer_name": _customer_name(owner),
            "pet_name": pet.name,
            "weeks_since_last": weeks_since,
            "booking_link": f"{config.SITE_URL}/book",
        }

        for channel, recipient in (("email", owner.email), ("sms", owner.phone)):
            if not recipient:
                continue
            if notifications.was_recently_sent(owner.id, RETENTION_REMINDER, channel, RETENTION_DEDUP_WINDOW):
                skipped += 1
                continue

            result = await notifications.send(
                NotificationMessage(
                    type=RETENTION_REMINDER,
                    channel=channel,
                    recipient=recipient,
                    customer_id=owner.id,
                    template_data=template_data,
                )
            )
            if result.success:
                sent += 1
            elif result.skipped:
                skipped += 1
            else:
                failed += 1

    logger.info(f"✅ Retention reminders: processed={processed} sent={sent} failed={failed} skipped={skipped}")
    return _summary(started, processed, sent, failed, skipped)
