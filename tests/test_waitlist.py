from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from app.domain.waitlist.matcher import matches_time_preference, select_matches
from app.domain.waitlist.schemas import FillSlotRequest
from app.domain.waitlist.service import WaitlistService
from app.models import Appointment, WaitlistEntry, WaitlistSlotOffer
from tests.conftest import upcoming_monday


@pytest.mark.parametrize(
    ("preference", "slot_time", "expected"),
    [
        ("morning", "09:00", True),
        ("morning", "11:30", True),
        ("morning", "14:00", False),
        ("afternoon", "12:00", True),
        ("afternoon", "11:30", False),
        ("any", "16:30", True),
    ],
)
def test_time_preference(preference: str, slot_time: str, expected: bool) -> None:
    assert matches_time_preference(preference, slot_time) is expected


def _entries(seed, count: int, day, **kwargs):
    customer = seed.customer()
    pet = seed.pet(customer)
    service = seed.service()
    entries = [seed.waitlist_entry(customer, pet, service, day, **kwargs) for _ in range(count)]
    return customer, pet, service, entries


def test_match_is_fifo_filtered_and_limited(db, seed) -> None:
    day = upcoming_monday()
    customer, pet, service, _ = _entries(seed, 0, day)
    morning = seed.waitlist_entry(customer, pet, service, day, time_preference="morning")
    first_any = seed.waitlist_entry(customer, pet, service, day)
    afternoon = seed.waitlist_entry(customer, pet, service, day, time_preference="afternoon")
    seed.waitlist_entry(customer, pet, service, day, status="cancelled")
    second_any = seed.waitlist_entry(customer, pet, service, day)

    matches = WaitlistService(db).match(service.id, day, "14:00", limit=2)

    assert [e.id for e in matches] == [first_any.id, afternoon.id]
    assert morning.id not in [e.id for e in matches]
    assert second_any.id not in [e.id for e in matches]


def test_select_matches_respects_limit() -> None:
    class Entry:
        def __init__(self, entry_id: int):
            self.id = entry_id
            self.created_at = datetime(2030, 1, 1, 9, entry_id)
            self.time_preference = "any"

    entries = [Entry(n) for n in (3, 1, 2)]
    assert [e.id for e in select_matches(entries, "10:00", limit=2)] == [1, 2]


def test_fill_slot_creates_offer_and_notifies(db, seed, sms_provider) -> None:
    day = upcoming_monday()
    seed.enable("waitlist_slot_available", email=False, sms=True)
    seed.template(
        "waitlist_slot_available",
        "sms",
        "A spot opened {{available_date}} at {{available_time}} ({{discount_percentage}}% off). Reply YES. {{claim_link}}",
    )
    _, _, service, entries = _entries(seed, 2, day)

    now = datetime.utcnow()
    result = asyncio.run(
        WaitlistService(db).fill_slot(
            FillSlotRequest(service_id=service.id, date=day.isoformat(), time="10:00"), now=now
        )
    )

    assert result.offer is not None
    assert result.offer.expires_at == now + timedelta(hours=2)
    assert sorted(result.offered_entries) == sorted(e.id for e in entries)
    assert result.notified == 2
    assert "10:00 AM" in sms_provider.sent[0]["body"]
    assert "10% off" in sms_provider.sent[0]["body"]

    db.expire_all()
    for entry in db.query(WaitlistEntry).all():
        assert entry.status == "offered"
        assert entry.offer_id == result.offer.id
        assert entry.offer_expires_at == now + timedelta(hours=2)
    assert db.query(Appointment).count() == 0


def test_fill_slot_without_matches(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, _ = _entries(seed, 1, day, time_preference="morning")

    result = asyncio.run(
        WaitlistService(db).fill_slot(FillSlotRequest(service_id=service.id, date=day.isoformat(), time="15:00"))
    )

    assert result.offer is None
    assert result.message == "No matching waitlist entries"
    assert db.query(WaitlistSlotOffer).count() == 0


def _offer_to(db, service, entries, day, slot_time="10:00", expires_in=timedelta(hours=2)):
    now = datetime.utcnow()
    offer = WaitlistSlotOffer(
        service_id=service.id,
        slot_date=day,
        slot_time=slot_time,
        status="pending",
        expires_at=now + expires_in,
    )
    db.add(offer)
    db.commit()
    for entry in entries:
        entry.status = "offered"
        entry.offer_id = offer.id
        entry.offered_at = now
        entry.offer_expires_at = now + expires_in
    db.commit()
    return offer


def test_first_acceptor_wins(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 2, day)
    offer = _offer_to(db, service, entries, day)
    service_layer = WaitlistService(db)

    first = asyncio.run(service_layer.accept_offer(db.get(WaitlistEntry, entries[0].id)))
    second = asyncio.run(service_layer.accept_offer(db.get(WaitlistEntry, entries[1].id)))

    assert first is not None
    assert first.booking_reference.startswith("APT-")
    assert second is None

    db.expire_all()
    assert db.get(WaitlistSlotOffer, offer.id).status == "accepted"
    assert db.get(WaitlistSlotOffer, offer.id).accepted_entry_id == entries[0].id
    assert db.get(WaitlistEntry, entries[0].id).status == "booked"
    assert db.get(WaitlistEntry, entries[1].id).status == "active"
    assert db.query(Appointment).count() == 1


def test_expired_offer_cannot_be_accepted(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 1, day)
    _offer_to(db, service, entries, day, expires_in=timedelta(minutes=-5))

    assert asyncio.run(WaitlistService(db).accept_offer(db.get(WaitlistEntry, entries[0].id))) is None
    assert db.query(Appointment).count() == 0


def test_decline_returns_entry_to_active(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 1, day)
    _offer_to(db, service, entries, day)

    assert WaitlistService(db).decline_offer(db.get(WaitlistEntry, entries[0].id)) is True

    db.expire_all()
    entry = db.get(WaitlistEntry, entries[0].id)
    assert entry.status == "active"
    assert entry.offer_expires_at is None


def test_expiration_sweep_is_idempotent(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 2, day)
    offer = _offer_to(db, service, entries, day, expires_in=timedelta(minutes=-1))
    service_layer = WaitlistService(db)

    first = service_layer.expire_offers()
    second = service_layer.expire_offers()

    assert (first.expired_offers, first.expired_entries) == (1, 2)
    assert (second.expired_offers, second.expired_entries) == (0, 0)
    db.expire_all()
    assert db.get(WaitlistSlotOffer, offer.id).status == "expired"
    assert {e.status for e in db.query(WaitlistEntry).all()} == {"expired"}


def test_live_offers_survive_the_sweep(db, seed) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 1, day)
    _offer_to(db, service, entries, day)

    result = WaitlistService(db).expire_offers()

    assert (result.expired_offers, result.expired_entries) == (0, 0)


def test_book_from_waitlist_endpoint(client, db, seed, admin_headers) -> None:
    day = upcoming_monday()
    _, _, service, entries = _entries(seed, 1, day)

    response = client.post(
        f"/admin/waitlist/{entries[0].id}/book",
        json={"scheduled_at": f"{day.isoformat()}T13:00:00", "discount_percentage": 10},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["appointment"]["waitlist_entry_id"] == entries[0].id
    assert body["appointment"]["discount_percentage"] == 10
    db.expire_all()
    assert db.get(WaitlistEntry, entries[0].id).status == "booked"


def test_book_from_waitlist_errors(client, db, seed, admin_headers) -> None:
    day = upcoming_monday()
    customer, pet, service, entries = _entries(seed, 1, day, status="cancelled")
    seed.appointment(customer, pet, service, datetime.combine(day, datetime.min.time()).replace(hour=10))
    active = seed.waitlist_entry(customer, pet, service, day)
    payload = {"scheduled_at": f"{day.isoformat()}T10:30:00"}

    missing = client.post("/admin/waitlist/9999/book", json=payload, headers=admin_headers)
    cancelled = client.post(f"/admin/waitlist/{entries[0].id}/book", json=payload, headers=admin_headers)
    conflict = client.post(f"/admin/waitlist/{active.id}/book", json=payload, headers=admin_headers)

    assert missing.status_code == 404
    assert cancelled.status_code == 400
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "SLOT_CONFLICT"


def test_match_endpoint_requires_admin(client, seed) -> None:
    response = client.post("/admin/waitlist/match", json={"service_id": 1, "date": "2030-01-07", "time": "10:00"})
    assert response.status_code == 401
