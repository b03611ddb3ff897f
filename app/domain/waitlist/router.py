"""Waitlist router - Admin matching, slot offers and waitlist bookings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ..appointments.schemas import AppointmentResponse
from .schemas import BookFromWaitlistRequest, FillSlotRequest, SlotRequest, WaitlistEntryResponse
from .service import WaitlistService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/waitlist", tags=["Admin Waitlist"], dependencies=[Depends(require_admin)])


def get_waitlist_service(db: Session = Depends(get_db)) -> WaitlistService:
    """Dependency injection for WaitlistService"""
    return WaitlistService(db)


@router.post("/match")
async def match_waitlist(data: SlotRequest, service: WaitlistService = Depends(get_waitlist_service)):
    """Waitlist entries that fit an opened slot (no offers are made)"""
    matches = service.match(data.service_id, data.slot_date, data.time, data.limit)
    return {
        "success": True,
        "matches": [WaitlistEntryResponse.model_validate(e).model_dump(mode="json") for e in matches],
        "total": len(matches),
    }


@router.post("/fill-slot")
async def fill_slot(data: FillSlotRequest, service: WaitlistService = Depends(get_waitlist_service)):
    result = await service.fill_slot(data)
    return {"success": True, **result.model_dump(mode="json")}


@router.post("/{entry_id}/book")
async def book_from_waitlist(
    entry_id: int,
    data: BookFromWaitlistRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    appointment = await service.book_from_waitlist(entry_id, data)
    return {
        "success": True,
        "appointment": AppointmentResponse.model_validate(appointment).model_dump(mode="json"),
    }
