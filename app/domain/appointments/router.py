"""Appointments router - Public booking and admin status changes"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
admin_router = APIRouter(
    prefix="/admin/appointments", tags=["Admin Appointments"], dependencies=[Depends(require_admin)]
)

booking_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="booking")


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.post("", dependencies=[Depends(booking_rate_limit)])
async def create_appointment(
    data: AppointmentCreate, service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.create_appointment(data)
    return {
        "success": True,
        "appointment": AppointmentResponse.model_validate(appointment).model_dump(mode="json"),
    }


@admin_router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    result = await service.update_status(appointment_id, data)
    return {"success": True, **result.model_dump(mode="json")}
