"""Notifications router - Admin log inspection, resends and manual job triggers"""

import logging
import math

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import config
from ...auth import require_admin
from ...database import get_db
from ...errors import ForbiddenError, NotFoundError
from ...services.scheduled_jobs import JOBS, run_job
from .repository import NotificationRepository
from .schemas import NotificationLogFilters, NotificationLogPage, NotificationLogResponse
from .service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/notifications", tags=["Admin Notifications"], dependencies=[Depends(require_admin)]
)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """Dependency injection for NotificationService"""
    return NotificationService(db)


@router.get("/log")
async def list_notification_logs(filters: NotificationLogFilters = Depends(), db: Session = Depends(get_db)):
    logs, total = NotificationRepository.list_logs(
        db,
        page=filters.page,
        limit=filters.limit,
        status=filters.status,
        channel=filters.channel,
        notification_type=filters.type,
    )
    page = NotificationLogPage(
        logs=[NotificationLogResponse.model_validate(log) for log in logs],
        total=total,
        page=filters.page,
        limit=filters.limit,
        total_pages=math.ceil(total / filters.limit) if total else 0,
    )
    return {"success": True, **page.model_dump(mode="json")}


@router.get("/log/{log_id}")
async def get_notification_log(log_id: int, db: Session = Depends(get_db)):
    log = NotificationRepository.get_log(db, log_id)
    if not log:
        raise NotFoundError("Notification not found")
    return {"success": True, "log": NotificationLogResponse.model_validate(log).model_dump(mode="json")}


@router.post("/log/{log_id}/resend")
async def resend_notification(log_id: int, service: NotificationService = Depends(get_notification_service)):
    result = await service.resend_log(log_id)
    return {"success": result.success, "result": result.model_dump()}


@router.post("/jobs/{job_name}/trigger")
async def trigger_job(job_name: str, db: Session = Depends(get_db)):
    """Run a scheduled job on demand (development only)"""
    if not config.DEV_MODE:
        raise ForbiddenError("Manual job triggers are only available in development mode")
    if job_name not in JOBS:
        raise NotFoundError(f"Unknown job '{job_name}'", available_jobs=sorted(JOBS))

    logger.info(f"🔧 Manual trigger for job '{job_name}'")
    return await run_job(db, job_name)
