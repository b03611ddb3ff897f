"""
Cron endpoints

Called by the external scheduler with the cron secret as a bearer token.
GET and POST are both accepted.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import require_cron_secret
from ..database import get_db
from ..services.scheduled_jobs import run_job

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(require_cron_secret)])


async def _run(db: Session, name: str):
    result = await run_job(db, name)
    status_code = 200 if result.get("success") else 500
    return JSONResponse(status_code=status_code, content=result)


@router.api_route("/notifications/reminders", methods=["GET", "POST"])
async def cron_appointment_reminders(db: Session = Depends(get_db)):
    return await _run(db, "reminders")


@router.api_route("/notifications/retention", methods=["GET", "POST"])
async def cron_retention_reminders(db: Session = Depends(get_db)):
    return await _run(db, "retention")


@router.api_route("/notifications/retry", methods=["GET", "POST"])
async def cron_notification_retry(db: Session = Depends(get_db)):
    return await _run(db, "retry")


@router.api_route("/waitlist-expiration", methods=["GET", "POST"])
async def cron_waitlist_expiration(db: Session = Depends(get_db)):
    return await _run(db, "waitlist-expiration")
