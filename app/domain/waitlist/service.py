"""Waitlist service - Matching, slot offers, acceptance and expiration"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...errors import ConcurrentUpdateError, NotFoundError, SlotConflictError, ValidationError
from ...models import Appointment, WaitlistEntry, WaitlistSlotOffer
from ...shared.transitions import transition_status
from ..appointments.booking import book_appointment
from ..notifications.schemas import NotificationMessage
from ..notifications.service import NotificationService
from ..scheduling.time_calculator import slot_start
from .matcher import select_matches
from .repository import WaitlistRepository
from .schemas import BookFromWaitlistRequest, ExpirationResult, FillSlotRequest, FillSlotResult, SlotOfferResponse

logger = logging.getLogger(__name__)

SLOT_AVAILABLE_NOTIFICATION = "waitlist_slot_available"

ACCEPT_KEYWORDS = ("YES", "Y", "BOOK")
DECLINE_KEYWORDS = ("NO", "N", "STOP")

DECLINED_REPLY = "No problem! We'll keep you on the waitlist and let you know if another spot opens up."


def display_time(slot_time: str) -> str:
    return datetime.strptime(slot_time, "%H:%M").strftime("%-I:%M %p")


def display_date(day: date) -> str:
    return day.strftime("%A, %B %-d")


def slot_taken_reply(entry: WaitlistEntry, business_phone: str) -> str:
    if entry.status == "active":
        return (
            "Sorry, this slot is no longer available. "
            "You're still on the waitlist and we'll text you when another spot opens."
        )
    return f"Sorry, this slot is no longer available. Call us at {business_phone} to rejoin the waitlist."


class WaitlistService:
    """Service layer for waitlist business logic"""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.repo = WaitlistRepository()
        self._notifications = notifications

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self.db)
        return self._notifications

    # ------------------------------------------------------------------
    # Matching and offers
    # ------------------------------------------------------------------

    def match(self, service_id: int, day: date, slot_time: str, limit: int = 5) -> list[WaitlistEntry]:
        """Active entries for the opened slot, FIFO, filtered by time preference"""
        entries = self.repo.get_active_entries(self.db, service_id, day)
        matches = select_matches(entries, slot_time, limit)
        logger.info(
            f"🔍 Waitlist match for service {service_id} on {day} {slot_time}: "
            f"{len(matches)} of {len(entries)} active"
        )
        return matches

    async def fill_slot(self, data: FillSlotRequest, now: Optional[datetime] = None) -> FillSlotResult:
        """Offer an opened slot to matching entries; nothing is booked here"""
        now = now or datetime.utcnow()
        if not self.repo.get_service(self.db, data.service_id):
            raise NotFoundError("Service not found")

        if data.waitlist_entry_ids:
            candidates = [
                e
                for e in self.repo.get_entries_by_ids(self.db, data.waitlist_entry_ids)
                if e.status == "active" and e.service_id == data.service_id
            ][: data.limit]
        else:
            candidates = self.match(data.service_id, data.slot_date, data.time, data.limit)

        if not candidates:
            return FillSlotResult(message="No matching waitlist entries")

        expires_at = now + timedelta(hours=data.response_window_hours)
        offer = self.repo.create_offer(
            self.db,
            service_id=data.service_id,
            slot_date=data.slot_date,
            slot_time=data.time,
            discount_percentage=data.discount_percentage,
            response_window_hours=data.response_window_hours,
            status="pending",
            expires_at=expires_at,
        )

        offered, skipped = [], []
        for entry in candidates:
            moved = transition_status(
                self.db,
                WaitlistEntry,
                entry.id,
                "active",
                "offered",
                offer_id=offer.id,
                offered_at=now,
                offer_expires_at=expires_at,
            )
            (offered if moved else skipped).append(entry.id)

        notified = 0
        for entry in self.repo.get_entries_by_ids(self.db, offered):
            if await self._send_offer(entry, offer):
                notified += 1

        logger.info(f"✅ Offer {offer.id}: {len(offered)} entries offered, {notified} notified")
        return FillSlotResult(
            offer=SlotOfferResponse.model_validate(offer),
            offered_entries=offered,
            notified=notified,
            skipped_entries=skipped,
        )

    async def _send_offer(self, entry: WaitlistEntry, offer: WaitlistSlotOffer) -> bool:
        customer = entry.customer
        if not customer.phone:
            logger.warning(f"⚠️ Waitlist entry {entry.id} customer has no phone, offer not sent")
            return False
        try:
            result = await self.notifications.send(
                NotificationMessage(
                    type=SLOT_AVAILABLE_NOTIFICATION,
                    channel="sms",
                    recipient=customer.phone,
                    customer_id=customer.id,
                    template_data={
                        "customer_name": customer.first_name,
                        "pet_name": entry.pet.name,
                        "available_date": display_date(offer.slot_date),
                        "available_time": display_time(offer.slot_time),
                        "discount_percentage": offer.discount_percentage,
                        "claim_link": f"{config.SITE_URL}/waitlist/claim/{offer.id}",
                    },
                )
            )
        except Exception as e:
            logger.error(f"❌ Failed to notify waitlist entry {entry.id}: {e}")
            return False
        return result.success

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def book_from_waitlist(self, entry_id: int, data: BookFromWaitlistRequest) -> Appointment:
        """Staff booking of a waitlist entry at an explicit time"""
        entry = self.repo.get_entry(self.db, entry_id)
        if not entry:
            raise NotFoundError("Waitlist entry not found")
        if entry.status in ("booked", "cancelled"):
            raise ValidationError(f"Waitlist entry is already {entry.status}")

        expected_status = entry.status

        def mark_booked(appointment: Appointment) -> None:
            moved = transition_status(
                self.db,
                WaitlistEntry,
                entry_id,
                expected_status,
                "booked",
                commit=False,
                booked_appointment_id=appointment.id,
            )
            if not moved:
                raise ConcurrentUpdateError("Waitlist entry was updated by another request")

        appointment = await book_appointment(
            self.db,
            before_commit=mark_booked,
            customer_id=entry.customer_id,
            pet_id=entry.pet_id,
            service_id=entry.service_id,
            scheduled_at=data.scheduled_at,
            duration_minutes=entry.service.duration_minutes,
            status="confirmed",
            discount_percentage=data.discount_percentage,
            notes=data.notes,
            waitlist_entry_id=entry_id,
        )
        logger.info(f"✅ Waitlist entry {entry_id} booked as {appointment.booking_reference}")
        return appointment

    async def accept_offer(self, entry: WaitlistEntry, now: Optional[datetime] = None) -> Optional[Appointment]:
        """
        Book the offered slot for this entry. First writer wins.

        Returns None when the offer was already taken, expired, or the slot is
        no longer free; the entry goes back to active in that case.
        """
        now = now or datetime.utcnow()
        offer = entry.offer
        entry_id, offer_id = entry.id, offer.id

        def claim_offer(appointment: Appointment) -> None:
            claimed = transition_status(
                self.db,
                WaitlistSlotOffer,
                offer_id,
                "pending",
                "accepted",
                commit=False,
                where=[WaitlistSlotOffer.expires_at > now],
                accepted_at=now,
                accepted_entry_id=entry_id,
                appointment_id=appointment.id,
            )
            if not claimed:
                raise SlotConflictError("This slot is no longer available")
            booked = transition_status(
                self.db,
                WaitlistEntry,
                entry_id,
                "offered",
                "booked",
                commit=False,
                booked_appointment_id=appointment.id,
            )
            if not booked:
                raise ConcurrentUpdateError("Waitlist entry was updated by another request")
            released = self.repo.release_other_offered_entries(self.db, offer_id, entry_id)
            if released:
                logger.info(f"↩️ Offer {offer_id} taken, {released} other entry(ies) back to active")

        try:
            appointment = await book_appointment(
                self.db,
                before_commit=claim_offer,
                customer_id=entry.customer_id,
                pet_id=entry.pet_id,
                service_id=offer.service_id,
                scheduled_at=slot_start(offer.slot_date, offer.slot_time),
                duration_minutes=offer.service.duration_minutes,
                status="confirmed",
                discount_percentage=offer.discount_percentage,
                waitlist_entry_id=entry_id,
            )
        except (SlotConflictError, ConcurrentUpdateError, ValidationError) as e:
            logger.info(f"⚠️ Offer {offer_id} not accepted for entry {entry_id}: {e}")
            self._return_to_waitlist(entry_id)
            return None

        logger.info(f"✅ Offer {offer_id} accepted by entry {entry_id} ({appointment.booking_reference})")
        return appointment

    def decline_offer(self, entry: WaitlistEntry) -> bool:
        moved = self._return_to_waitlist(entry.id)
        if moved:
            logger.info(f"↩️ Waitlist entry {entry.id} declined offer, back to active")
        return moved

    def _return_to_waitlist(self, entry_id: int) -> bool:
        return transition_status(
            self.db,
            WaitlistEntry,
            entry_id,
            "offered",
            "active",
            offer_expires_at=None,
        )

    # ------------------------------------------------------------------
    # Inbound SMS
    # ------------------------------------------------------------------

    async def handle_sms_reply(self, phone: str, body: str) -> str:
        """Process a customer's reply to a slot offer and return the SMS response text"""
        keyword = (body or "").strip().upper()
        business_phone = config.BUSINESS_CONTEXT["phone"]

        if keyword not in ACCEPT_KEYWORDS + DECLINE_KEYWORDS:
            return (
                "Reply YES to book the offered appointment or NO to pass. "
                f"Questions? Call us at {business_phone}."
            )

        entry = self.repo.find_offered_entry_for_phone(self.db, phone)
        if not entry:
            # Offer already taken by someone else, expired, or declined
            stale = self.repo.find_last_offer_entry_for_phone(self.db, phone)
            if stale and keyword in ACCEPT_KEYWORDS:
                return slot_taken_reply(stale, business_phone)
            if stale and stale.status == "active":
                return DECLINED_REPLY
            return f"We couldn't find an open offer for this number. Call us at {business_phone}."

        if keyword in DECLINE_KEYWORDS:
            self.decline_offer(entry)
            return DECLINED_REPLY

        appointment = await self.accept_offer(entry)
        if not appointment:
            self.db.refresh(entry)
            return slot_taken_reply(entry, business_phone)

        when = appointment.scheduled_at
        return (
            f"You're booked! {display_date(when.date())} at {display_time(when.strftime('%H:%M'))}. "
            f"Confirmation: {appointment.booking_reference}. See you soon!"
        )

    # ------------------------------------------------------------------
    # Expiration sweep
    # ------------------------------------------------------------------

    def expire_offers(self, now: Optional[datetime] = None) -> ExpirationResult:
        """Expire lapsed offers and offered entries. Safe to re-run."""
        now = now or datetime.utcnow()
        result = ExpirationResult()

        for offer_id in self.repo.get_expired_offer_ids(self.db, now):
            if transition_status(self.db, WaitlistSlotOffer, offer_id, "pending", "expired"):
                result.expired_offers += 1

        for entry_id in self.repo.get_expired_entry_ids(self.db, now):
            if transition_status(self.db, WaitlistEntry, entry_id, "offered", "expired"):
                result.expired_entries += 1

        logger.info(
            f"⏰ Waitlist expiration: {result.expired_offers} offer(s), {result.expired_entries} entry(ies) expired"
        )
        return result
