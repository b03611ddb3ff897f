"""
Retry sweep for failed notifications

Each due row is claimed with a compare-and-set to pending that also pushes
retry_after to an in-flight deadline, so a row is only ever in flight once. A
row left pending by a crashed worker becomes due again once that deadline
passes. retry_count only grows and a row at max_retries is never claimed again.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import NotificationLog
from ...shared.transitions import transition_status
from .errors import RetryConfig, calculate_retry_after, classify_error, has_exceeded_max_retries, in_flight_until
from .repository import RETRYABLE_STATUSES, NotificationRepository
from .schemas import RetryError, RetryResult
from .service import NotificationService

logger = logging.getLogger(__name__)

RETRY_BATCH_SIZE = 100


class RetryManager:
    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.db = db
        self.repo = NotificationRepository()
        self.retry_config = retry_config or RetryConfig.from_env()
        self.notifications = notification_service or NotificationService(db, retry_config=self.retry_config)

    async def process_retries(self, now: Optional[datetime] = None) -> RetryResult:
        now = now or datetime.utcnow()
        due_ids = self.repo.get_due_retry_ids(self.db, now, self.retry_config.max_retries)
        result = RetryResult()

        if not due_ids:
            logger.info("🔄 No notifications due for retry")
            return result

        logger.info(f"🔄 {len(due_ids)} notification(s) due for retry")
        for start in range(0, len(due_ids), RETRY_BATCH_SIZE):
            for log_id in due_ids[start : start + RETRY_BATCH_SIZE]:
                await self._retry_one(log_id, now, result)

        logger.info(
            f"✅ Retry sweep done: processed={result.processed} "
            f"succeeded={result.succeeded} failed={result.failed}"
        )
        return result

    async def _retry_one(self, log_id: int, now: datetime, result: RetryResult) -> None:
        claimed = transition_status(
            self.db,
            NotificationLog,
            log_id,
            RETRYABLE_STATUSES,
            "pending",
            where=[
                NotificationLog.retry_count < self.retry_config.max_retries,
                NotificationLog.retry_after <= now,
            ],
            retry_after=in_flight_until(),
        )
        if not claimed:
            return

        log = self.repo.get_log(self.db, log_id)
        result.processed += 1

        try:
            send_result = await self.notifications.deliver(log)
            if send_result.success:
                self.repo.update_log(
                    self.db,
                    log,
                    status="sent",
                    sent_at=datetime.utcnow(),
                    message_id=send_result.message_id,
                    error_message=None,
                    retry_after=None,
                )
                result.succeeded += 1
                logger.info(f"✅ Retry succeeded for notification {log_id}")
                return
            error = self._record_failure(log, send_result.error, send_result.status_code)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Retry of notification {log_id} crashed: {e}")
            log = self.repo.get_log(self.db, log_id)
            error = self._record_failure(log, str(e), None)

        result.failed += 1
        result.errors.append(RetryError(log_id=log_id, error=error))

    def _record_failure(self, log: NotificationLog, message: Optional[str], status_code: Optional[int]) -> str:
        classified = classify_error(message, status_code)
        new_count = log.retry_count + 1

        if classified.retryable and not has_exceeded_max_retries(new_count, self.retry_config.max_retries):
            retry_after = calculate_retry_after(new_count, self.retry_config)
            error = f"{classified.message} ({classified.type})"
            logger.warning(f"⚠️ Notification {log.id} failed again, retry {new_count} at {retry_after}")
        else:
            retry_after = None
            reason = "Max retries exceeded" if classified.retryable else "Non-retryable error"
            error = f"{classified.message} ({reason})"
            logger.error(f"❌ Notification {log.id} gave up after {new_count} retries: {error}")

        self.repo.update_log(
            self.db,
            log,
            status="failed",
            retry_count=new_count,
            retry_after=retry_after,
            error_message=error,
        )
        return error
