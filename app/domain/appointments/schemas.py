"""Appointment schemas - Pydantic models for bookings and status changes"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..waitlist.schemas import WaitlistEntryResponse


class AppointmentCreate(BaseModel):
    customer_id: int
    pet_id: int
    service_id: int
    scheduled_at: datetime
    groomer_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    status: Literal["pending", "confirmed", "checked_in", "in_progress", "completed", "cancelled", "no_show"]
    reason: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    booking_reference: Optional[str] = None
    customer_id: int
    pet_id: int
    service_id: int
    groomer_id: Optional[int] = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    discount_percentage: int = 0
    notes: Optional[str] = None
    waitlist_entry_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusChangeResult(BaseModel):
    appointment: AppointmentResponse
    previous_status: str
    waitlist_matches: list[WaitlistEntryResponse] = []
