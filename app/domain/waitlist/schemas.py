"""Waitlist schemas - Pydantic models for matching, offers and waitlist bookings"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import parse_iso_date, validate_hhmm


class SlotRequest(BaseModel):
    service_id: int
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    limit: int = Field(5, ge=1, le=10)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_iso_date(v)
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return validate_hhmm(v)

    @property
    def slot_date(self) -> date_type:
        return parse_iso_date(self.date)


class FillSlotRequest(SlotRequest):
    discount_percentage: int = Field(10, ge=0, le=100)
    response_window_hours: int = Field(2, ge=1, le=72)
    waitlist_entry_ids: Optional[list[int]] = None


class BookFromWaitlistRequest(BaseModel):
    scheduled_at: datetime
    discount_percentage: int = Field(0, ge=0, le=100)
    notes: Optional[str] = None


class WaitlistEntryResponse(BaseModel):
    id: int
    customer_id: int
    pet_id: int
    service_id: int
    requested_date: date_type
    time_preference: str
    status: str
    offer_id: Optional[int] = None
    offered_at: Optional[datetime] = None
    offer_expires_at: Optional[datetime] = None
    booked_appointment_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotOfferResponse(BaseModel):
    id: int
    service_id: int
    slot_date: date_type
    slot_time: str
    discount_percentage: int
    response_window_hours: int
    status: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_entry_id: Optional[int] = None
    appointment_id: Optional[int] = None

    class Config:
        from_attributes = True


class FillSlotResult(BaseModel):
    offer: Optional[SlotOfferResponse] = None
    offered_entries: list[int] = []
    notified: int = 0
    skipped_entries: list[int] = []
    message: Optional[str] = None


class ExpirationResult(BaseModel):
    expired_offers: int = 0
    expired_entries: int = 0
