from __future__ import annotations

import os

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEV_MODE"] = "false"
os.environ["TWILIO_AUTH_TOKEN"] = "test-twilio-token"
os.environ["TWILIO_ACCOUNT_SID"] = "ACtest"
os.environ["RESEND_API_KEY"] = "re_test"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, datetime, timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine
from app.domain.notifications import service as notification_service_module
from app.domain.notifications.providers import SendResult
from app.main import app
from app.models import (
    Appointment,
    Customer,
    NotificationSetting,
    NotificationTemplate,
    Pet,
    Service,
    WaitlistEntry,
)

ADMIN_TOKEN = "test-admin-token"
CRON_SECRET = "test-cron-secret"


class FakeProvider:
    """In-memory provider; queue SendResults in `responses` to script failures"""

    def __init__(self, channel: str):
        self.channel = channel
        self.sent: list[dict] = []
        self.responses: list[SendResult] = []

    async def send(self, to: str, body: str, subject: Optional[str] = None, html: Optional[str] = None) -> SendResult:
        self.sent.append({"to": to, "body": body, "subject": subject, "html": html})
        if self.responses:
            return self.responses.pop(0)
        return SendResult(success=True, message_id=f"{self.channel}-{len(self.sent)}")


def upcoming_monday(weeks_ahead: int = 1) -> date:
    """A Monday inside the default 90-day booking window"""
    today = date.today()
    return today + timedelta(days=7 - today.weekday() + 7 * (weeks_ahead - 1))


class Seed:
    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def customer(self, **kwargs) -> Customer:
        data = {"first_name": "Jamie", "last_name": "Rivera", "email": "jamie@example.com", "phone": "+16575551234"}
        data.update(kwargs)
        return self._save(Customer(**data))

    def pet(self, owner: Customer, **kwargs) -> Pet:
        data = {"owner_id": owner.id, "name": "Biscuit", "breed_name": "Shih Tzu"}
        data.update(kwargs)
        return self._save(Pet(**data))

    def service(self, **kwargs) -> Service:
        data = {"name": "Basic Groom", "duration_minutes": 60, "price": 55.0}
        data.update(kwargs)
        return self._save(Service(**data))

    def appointment(self, customer: Customer, pet: Pet, service: Service, scheduled_at: datetime, **kwargs) -> Appointment:
        data = {
            "customer_id": customer.id,
            "pet_id": pet.id,
            "service_id": service.id,
            "scheduled_at": scheduled_at,
            "duration_minutes": service.duration_minutes,
            "status": "confirmed",
        }
        data.update(kwargs)
        return self._save(Appointment(**data))

    def waitlist_entry(self, customer: Customer, pet: Pet, service: Service, requested_date: date, **kwargs) -> WaitlistEntry:
        data = {
            "customer_id": customer.id,
            "pet_id": pet.id,
            "service_id": service.id,
            "requested_date": requested_date,
            "time_preference": "any",
            "status": "active",
        }
        data.update(kwargs)
        return self._save(WaitlistEntry(**data))

    def template(self, notification_type: str, channel: str, text: str, variables=None, **kwargs) -> NotificationTemplate:
        data = {
            "type": notification_type,
            "channel": channel,
            "text_template": text,
            "variables": variables or [],
        }
        data.update(kwargs)
        return self._save(NotificationTemplate(**data))

    def enable(self, notification_type: str, email: bool = True, sms: bool = True) -> NotificationSetting:
        return self._save(
            NotificationSetting(notification_type=notification_type, email_enabled=email, sms_enabled=sms)
        )


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def seed(db) -> Seed:
    return Seed(db)


@pytest.fixture()
def email_provider() -> FakeProvider:
    return FakeProvider("email")


@pytest.fixture()
def sms_provider() -> FakeProvider:
    return FakeProvider("sms")


@pytest.fixture(autouse=True)
def fake_providers(monkeypatch, email_provider, sms_provider):
    monkeypatch.setattr(notification_service_module, "get_email_provider", lambda: email_provider)
    monkeypatch.setattr(notification_service_module, "get_sms_provider", lambda: sms_provider)


@pytest.fixture()
def client(db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def cron_headers() -> dict:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
