"""
Scheduled jobs shared by the cron endpoints, the arq worker and the admin trigger

Each job runs under a named lease in job_leases so overlapping runs, from any
process, skip instead of doing the same work twice.
"""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.orm import Session

from ..domain.notifications.reminders import send_appointment_reminders, send_retention_reminders
from ..domain.notifications.retry import RetryManager
from ..domain.waitlist.service import WaitlistService
from ..shared.leases import hold_lease

logger = logging.getLogger(__name__)

JOB_LEASE_SECONDS = 600


async def _reminders(db: Session) -> dict:
    return await send_appointment_reminders(db)


async def _retention(db: Session) -> dict:
    return await send_retention_reminders(db)


async def _retry(db: Session) -> dict:
    result = await RetryManager(db).process_retries()
    return {"success": True, **result.model_dump()}


async def _waitlist_expiration(db: Session) -> dict:
    result = WaitlistService(db).expire_offers()
    return {"success": True, **result.model_dump()}


JOBS: dict[str, Callable[[Session], Awaitable[dict]]] = {
    "reminders": _reminders,
    "retention": _retention,
    "retry": _retry,
    "waitlist-expiration": _waitlist_expiration,
}


async def run_job(db: Session, name: str) -> dict:
    """
    Run a registered job under its lease.

    Returns {success: True, skipped: True} when another run holds the lease and
    {success: False, error} when the job raised.
    """
    job = JOBS[name]
    async with hold_lease(db, f"job:{name}", ttl_seconds=JOB_LEASE_SECONDS) as acquired:
        if not acquired:
            logger.info(f"⏭️ Job '{name}' already running, skipping")
            return {"success": True, "skipped": True, "message": "Job already running"}

        logger.info(f"🚀 Running job '{name}'")
        try:
            result = await job(db)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Job '{name}' failed: {e}", exc_info=True)
            return {"success": False, "error": f"Job '{name}' failed"}

    logger.info(f"✅ Job '{name}' finished")
    return result
