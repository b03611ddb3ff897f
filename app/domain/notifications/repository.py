"""Notification repository - Database operations for templates, settings and the send log"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Customer, NotificationLog, NotificationSetting, NotificationTemplate

# Statuses the retry sweep may claim: failed rows past their backoff, pending rows past their in-flight deadline
RETRYABLE_STATUSES = ("failed", "pending")


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def get_setting(db: Session, notification_type: str) -> Optional[NotificationSetting]:
        return (
            db.query(NotificationSetting)
            .filter(NotificationSetting.notification_type == notification_type)
            .first()
        )

    @staticmethod
    def get_active_template(db: Session, notification_type: str, channel: str) -> Optional[NotificationTemplate]:
        """Most recently updated active template for (type, channel)"""
        return (
            db.query(NotificationTemplate)
            .filter(
                NotificationTemplate.type == notification_type,
                NotificationTemplate.channel == channel,
                NotificationTemplate.is_active.is_(True),
            )
            .order_by(NotificationTemplate.updated_at.desc(), NotificationTemplate.id.desc())
            .first()
        )

    @staticmethod
    def get_customer(db: Session, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id).first()

    @staticmethod
    def create_log(db: Session, **log_data) -> NotificationLog:
        log = NotificationLog(**log_data)
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def update_log(db: Session, log: NotificationLog, **updates) -> NotificationLog:
        for key, value in updates.items():
            setattr(log, key, value)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def get_log(db: Session, log_id: int) -> Optional[NotificationLog]:
        return db.query(NotificationLog).filter(NotificationLog.id == log_id).first()

    @staticmethod
    def has_recent_sent(
        db: Session, customer_id: int, notification_type: str, channel: str, since: datetime
    ) -> bool:
        """True if a sent log of this type/channel exists for the customer after `since`"""
        return (
            db.query(NotificationLog.id)
            .filter(
                NotificationLog.customer_id == customer_id,
                NotificationLog.type == notification_type,
                NotificationLog.channel == channel,
                NotificationLog.status == "sent",
                NotificationLog.sent_at >= since,
            )
            .first()
            is not None
        )

    @staticmethod
    def get_due_retry_ids(db: Session, now: datetime, max_retries: int) -> list[int]:
        """Ids of failed logs whose backoff has elapsed and pending logs abandoned mid-delivery, oldest due first"""
        rows = (
            db.query(NotificationLog.id)
            .filter(
                NotificationLog.status.in_(RETRYABLE_STATUSES),
                NotificationLog.retry_after.isnot(None),
                NotificationLog.retry_after <= now,
                NotificationLog.retry_count < max_retries,
            )
            .order_by(NotificationLog.retry_after.asc(), NotificationLog.id.asc())
            .all()
        )
        return [row.id for row in rows]

    @staticmethod
    def list_logs(
        db: Session,
        page: int = 1,
        limit: int = 50,
        status: Optional[str] = None,
        channel: Optional[str] = None,
        notification_type: Optional[str] = None,
    ) -> tuple[list[NotificationLog], int]:
        query = db.query(NotificationLog)
        if status:
            query = query.filter(NotificationLog.status == status)
        if channel:
            query = query.filter(NotificationLog.channel == channel)
        if notification_type:
            query = query.filter(NotificationLog.type == notification_type)

        total = query.count()
        logs = (
            query.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return logs, total
