"""Waitlist repository - Database operations for waitlist entries and slot offers"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Customer, Service, WaitlistEntry, WaitlistSlotOffer


class WaitlistRepository:
    """Repository for waitlist database operations"""

    @staticmethod
    def get_entry(db: Session, entry_id: int) -> Optional[WaitlistEntry]:
        return db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id).first()

    @staticmethod
    def get_active_entries(db: Session, service_id: int, day: date) -> list[WaitlistEntry]:
        """Active entries for a service and date, oldest first"""
        return (
            db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.service_id == service_id,
                WaitlistEntry.requested_date == day,
                WaitlistEntry.status == "active",
            )
            .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc())
            .all()
        )

    @staticmethod
    def get_entries_by_ids(db: Session, entry_ids: list[int]) -> list[WaitlistEntry]:
        return (
            db.query(WaitlistEntry)
            .filter(WaitlistEntry.id.in_(entry_ids))
            .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc())
            .all()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.is_active.is_(True)).first()

    @staticmethod
    def create_offer(db: Session, **offer_data) -> WaitlistSlotOffer:
        offer = WaitlistSlotOffer(**offer_data)
        db.add(offer)
        db.commit()
        db.refresh(offer)
        return offer

    @staticmethod
    def get_offer(db: Session, offer_id: int) -> Optional[WaitlistSlotOffer]:
        return db.query(WaitlistSlotOffer).filter(WaitlistSlotOffer.id == offer_id).first()

    @staticmethod
    def get_expired_offer_ids(db: Session, now: datetime) -> list[int]:
        rows = (
            db.query(WaitlistSlotOffer.id)
            .filter(WaitlistSlotOffer.status == "pending", WaitlistSlotOffer.expires_at < now)
            .all()
        )
        return [row.id for row in rows]

    @staticmethod
    def get_expired_entry_ids(db: Session, now: datetime) -> list[int]:
        rows = (
            db.query(WaitlistEntry.id)
            .filter(
                WaitlistEntry.status == "offered",
                WaitlistEntry.offer_expires_at.isnot(None),
                WaitlistEntry.offer_expires_at < now,
            )
            .all()
        )
        return [row.id for row in rows]

    @staticmethod
    def find_offered_entry_for_phone(db: Session, phone: str) -> Optional[WaitlistEntry]:
        """Most recently offered entry with a still-pending offer for this customer phone"""
        return (
            db.query(WaitlistEntry)
            .join(Customer, Customer.id == WaitlistEntry.customer_id)
            .join(WaitlistSlotOffer, WaitlistSlotOffer.id == WaitlistEntry.offer_id)
            .options(joinedload(WaitlistEntry.offer))
            .filter(
                Customer.phone == phone,
                WaitlistEntry.status == "offered",
                WaitlistSlotOffer.status == "pending",
            )
            .order_by(WaitlistEntry.offered_at.desc(), WaitlistEntry.id.desc())
            .first()
        )

    @staticmethod
    def find_last_offer_entry_for_phone(db: Session, phone: str) -> Optional[WaitlistEntry]:
        """Most recently offered entry for this phone whose offer is no longer open to it"""
        return (
            db.query(WaitlistEntry)
            .join(Customer, Customer.id == WaitlistEntry.customer_id)
            .filter(
                Customer.phone == phone,
                WaitlistEntry.offer_id.isnot(None),
                WaitlistEntry.status.in_(("active", "expired")),
            )
            .order_by(WaitlistEntry.offered_at.desc(), WaitlistEntry.id.desc())
            .first()
        )

    @staticmethod
    def release_other_offered_entries(db: Session, offer_id: int, keep_entry_id: int) -> int:
        """Put the rest of an offer's entries back to active. Caller commits."""
        return (
            db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.offer_id == offer_id,
                WaitlistEntry.status == "offered",
                WaitlistEntry.id != keep_entry_id,
            )
            .update({"status": "active", "offer_expires_at": None}, synchronize_session=False)
        )
