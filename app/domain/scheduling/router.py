"""Scheduling router - availability lookups and booking settings administration"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...errors import ValidationError
from ...rate_limiter import create_rate_limiter
from ...shared.validators import parse_iso_date
from .availability_service import AvailabilityService
from .schemas import BlockedDate, BookingSettings, BusinessHours

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Availability"])
admin_router = APIRouter(prefix="/admin", tags=["Admin Scheduling"], dependencies=[Depends(require_admin)])

availability_rate_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="availability")


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def _parse_date(value: str):
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/availability", dependencies=[Depends(availability_rate_limit)])
async def get_availability(
    date: str = Query(..., description="YYYY-MM-DD"),
    service_id: Optional[int] = None,
    duration_minutes: Optional[int] = None,
    groomer_id: Optional[int] = None,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable slots for a day, limited to the customer booking window"""
    day = _parse_date(date)
    duration = service.resolve_duration(service_id, duration_minutes)
    availability = service.get_day_availability(day, duration, now=datetime.now(), groomer_id=groomer_id)
    return {"success": True, **availability.model_dump()}


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("/appointments/availability")
async def get_admin_availability(
    date: str = Query(..., description="YYYY-MM-DD"),
    duration_minutes: Optional[int] = None,
    service_id: Optional[int] = None,
    groomer_id: Optional[int] = None,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Slots for a day without the customer booking window (staff can book same-day)"""
    day = _parse_date(date)
    duration = service.resolve_duration(service_id, duration_minutes)
    availability = service.get_day_availability(day, duration, groomer_id=groomer_id)
    return {"success": True, **availability.model_dump()}


@admin_router.get("/settings/booking")
async def get_booking_settings(service: AvailabilityService = Depends(get_availability_service)):
    return {"success": True, "settings": service.get_booking_settings().model_dump(mode="json")}


@admin_router.put("/settings/booking")
async def update_booking_settings(
    data: BookingSettings, service: AvailabilityService = Depends(get_availability_service)
):
    settings = service.update_booking_settings(data)
    return {"success": True, "settings": settings.model_dump(mode="json")}


@admin_router.get("/settings/business-hours")
async def get_business_hours(service: AvailabilityService = Depends(get_availability_service)):
    return {"success": True, "business_hours": service.get_business_hours().model_dump()}


@admin_router.put("/settings/business-hours")
async def update_business_hours(
    data: BusinessHours, service: AvailabilityService = Depends(get_availability_service)
):
    hours = service.update_business_hours(data)
    return {"success": True, "business_hours": hours.model_dump()}


@admin_router.post("/settings/booking/blocked-dates")
async def add_blocked_date(data: BlockedDate, service: AvailabilityService = Depends(get_availability_service)):
    result = service.add_blocked_date(data)
    return {"success": True, **result.model_dump(mode="json")}


@admin_router.delete("/settings/booking/blocked-dates")
async def remove_blocked_date(
    date: str = Query(..., description="YYYY-MM-DD"),
    service: AvailabilityService = Depends(get_availability_service),
):
    result = service.remove_blocked_date(_parse_date(date))
    return {"success": True, **result.model_dump(mode="json")}
