"""Scheduling repository - Database operations for settings and calendar queries"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ACTIVE_APPOINTMENT_STATUSES, Appointment, Service, Setting

BOOKING_SETTINGS_KEY = "booking_settings"
BUSINESS_HOURS_KEY = "business_hours"


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_setting(db: Session, key: str) -> Optional[dict]:
        row = db.query(Setting).filter(Setting.key == key).first()
        return row.value if row else None

    @staticmethod
    def save_setting(db: Session, key: str, value: dict) -> Setting:
        row = db.query(Setting).filter(Setting.key == key).first()
        if row:
            row.value = value
        else:
            row = Setting(key=key, value=value)
            db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.is_active.is_(True)).first()

    @staticmethod
    def get_appointments_for_date(
        db: Session, day: date, statuses: tuple = ACTIVE_APPOINTMENT_STATUSES
    ) -> list[Appointment]:
        """Appointments starting on `day` in the given statuses"""
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        return (
            db.query(Appointment)
            .filter(
                Appointment.scheduled_at >= day_start,
                Appointment.scheduled_at < day_end,
                Appointment.status.in_(statuses),
            )
            .order_by(Appointment.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def count_appointments_between(db: Session, start_day: date, end_day: date) -> int:
        """Active appointments between two dates (inclusive)"""
        range_start = datetime.combine(start_day, time.min)
        range_end = datetime.combine(end_day, time.min) + timedelta(days=1)
        return (
            db.query(Appointment)
            .filter(
                Appointment.scheduled_at >= range_start,
                Appointment.scheduled_at < range_end,
                Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            )
            .count()
        )
