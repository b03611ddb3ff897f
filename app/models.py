from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Appointment statuses
APPOINTMENT_STATUSES = (
    "pending",
    "confirmed",
    "checked_in",
    "in_progress",
    "completed",
    "cancelled",
    "no_show",
)
# Statuses that occupy the calendar
ACTIVE_APPOINTMENT_STATUSES = ("pending", "confirmed", "checked_in", "in_progress")
# Statuses ignored by the conflict check
NON_BLOCKING_APPOINTMENT_STATUSES = ("cancelled", "no_show")

WAITLIST_STATUSES = ("active", "offered", "booked", "expired", "cancelled")
OFFER_STATUSES = ("pending", "accepted", "expired", "cancelled")
NOTIFICATION_STATUSES = ("pending", "sent", "failed")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True, index=True)  # E.164

    # Notification preferences
    marketing_opt_out = Column(Boolean, default=False, nullable=False)
    email_appointment_reminders = Column(Boolean, default=True, nullable=False)
    sms_appointment_reminders = Column(Boolean, default=True, nullable=False)
    email_retention_reminders = Column(Boolean, default=True, nullable=False)
    sms_retention_reminders = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    pets = relationship("Pet", back_populates="owner")


class Pet(Base):
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    breed_name = Column(String(100), nullable=True)
    grooming_frequency_weeks = Column(Integer, nullable=True)  # Falls back to 8 weeks
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("Customer", back_populates="pets")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(20), unique=True, index=True, nullable=True)  # APT-YYYY-NNNNNN
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    groomer_id = Column(Integer, nullable=True)  # None = whole salon

    # Wall-clock salon time
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)

    discount_percentage = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    waitlist_entry_id = Column(Integer, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    pet = relationship("Pet")
    service = relationship("Service")


class Setting(Base):
    """Key/value JSON settings (booking_settings, business_hours)"""

    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class WaitlistEntry(Base):
    __tablename__ = "waitlist"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    requested_date = Column(Date, nullable=False, index=True)
    time_preference = Column(String(20), default="any", nullable=False)  # morning, afternoon, any
    status = Column(String(20), default="active", nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Offer bookkeeping
    offer_id = Column(Integer, ForeignKey("waitlist_slot_offers.id"), nullable=True)
    offered_at = Column(DateTime, nullable=True)
    offer_expires_at = Column(DateTime, nullable=True)
    booked_appointment_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    pet = relationship("Pet")
    service = relationship("Service")
    offer = relationship("WaitlistSlotOffer", foreign_keys=[offer_id])


class WaitlistSlotOffer(Base):
    """Time-bounded invitation for an opened slot"""

    __tablename__ = "waitlist_slot_offers"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String(5), nullable=False)  # HH:MM
    discount_percentage = Column(Integer, default=10, nullable=False)
    response_window_hours = Column(Integer, default=2, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)

    accepted_at = Column(DateTime, nullable=True)
    accepted_entry_id = Column(Integer, nullable=True)
    appointment_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(100), nullable=False, index=True)
    channel = Column(String(10), nullable=False)  # email, sms
    subject_template = Column(Text, nullable=True)
    html_template = Column(Text, nullable=True)
    text_template = Column(Text, nullable=False)
    # [{"name": "customer_name", "required": true}, ...]
    variables = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class NotificationSetting(Base):
    __tablename__ = "notification_settings"

    notification_type = Column(String(100), primary_key=True)
    email_enabled = Column(Boolean, default=True, nullable=False)
    sms_enabled = Column(Boolean, default=False, nullable=False)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class NotificationLog(Base):
    """One row per send attempt"""

    __tablename__ = "notifications_log"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    type = Column(String(100), nullable=False, index=True)
    channel = Column(String(10), nullable=False)
    recipient = Column(String(255), nullable=False)
    subject = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    html_content = Column(Text, nullable=True)
    template_id = Column(Integer, ForeignKey("notification_templates.id"), nullable=True)
    template_data = Column(JSON, nullable=True)

    status = Column(String(20), default="pending", nullable=False, index=True)
    message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    retry_after = Column(DateTime, nullable=True, index=True)
    sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class JobLease(Base):
    """Cross-process mutual exclusion for cron jobs and booking commits"""

    __tablename__ = "job_leases"

    name = Column(String(100), primary_key=True)
    owner = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
