"""
Durable leases backed by the job_leases table

A lease is a named row with an owner and an expiry. Acquiring inserts the row,
or takes it over with a conditional UPDATE once the previous holder's lease
has expired, so exclusion holds across processes and hosts.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import JobLease

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 300


def new_owner_id() -> str:
    return uuid.uuid4().hex


def acquire_lease(db: Session, name: str, owner: str, ttl_seconds: int = DEFAULT_LEASE_SECONDS) -> bool:
    """Try to take the named lease. Returns False if someone else holds it."""
    now = datetime.utcnow()
    expires_at = now + timedelta(seconds=ttl_seconds)

    lease = JobLease(name=name, owner=owner, acquired_at=now, expires_at=expires_at)
    try:
        db.add(lease)
        db.commit()
        # Keep the identity map clear so the same session can re-acquire after a release
        db.expunge(lease)
        logger.debug(f"🔒 Lease '{name}' acquired by {owner}")
        return True
    except IntegrityError:
        db.rollback()

    # Row exists - take it over only if expired (or already ours)
    taken = (
        db.query(JobLease)
        .filter(
            JobLease.name == name,
            (JobLease.expires_at < now) | (JobLease.owner == owner),
        )
        .update(
            {"owner": owner, "acquired_at": now, "expires_at": expires_at},
            synchronize_session=False,
        )
    )
    db.commit()

    if taken == 1:
        logger.info(f"🔒 Lease '{name}' taken over by {owner}")
        return True
    return False


def release_lease(db: Session, name: str, owner: str) -> None:
    """Release the lease if this owner still holds it"""
    db.query(JobLease).filter(JobLease.name == name, JobLease.owner == owner).delete(
        synchronize_session=False
    )
    db.commit()
    logger.debug(f"🔓 Lease '{name}' released by {owner}")


@asynccontextmanager
async def hold_lease(
    db: Session,
    name: str,
    ttl_seconds: int = DEFAULT_LEASE_SECONDS,
    wait_seconds: float = 0,
    poll_interval: float = 0.1,
):
    """
    Async context manager yielding True if the lease was obtained.

    With wait_seconds > 0 the acquire is retried until the deadline; otherwise
    a single attempt is made. The lease is always released on exit when held.
    """
    owner = new_owner_id()
    acquired = acquire_lease(db, name, owner, ttl_seconds)

    deadline: Optional[float] = None
    if not acquired and wait_seconds > 0:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        while not acquired and loop.time() < deadline:
            await asyncio.sleep(poll_interval)
            acquired = acquire_lease(db, name, owner, ttl_seconds)

    try:
        yield acquired
    finally:
        if acquired:
            try:
                release_lease(db, name, owner)
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to release lease '{name}': {e}")
