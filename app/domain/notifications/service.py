"""Notification service - Template rendering, preference checks and delivery logging"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError, ProviderError, ValidationError
from ...models import Customer, NotificationLog
from .errors import RetryConfig, calculate_retry_after, classify_error, in_flight_until
from .preferences import check_notification_allowed
from .providers import SendResult, get_email_provider, get_sms_provider
from .repository import NotificationRepository
from .schemas import NotificationMessage, NotificationResult
from .templates import missing_required_variables, render_template

logger = logging.getLogger(__name__)

BATCH_CHUNK_SIZE = 10
BATCH_PAUSE_SECONDS = 0.1


class NotificationService:
    """
    Dispatches templated email/SMS notifications.

    Every attempt that passes the per-type settings check writes exactly one
    notifications_log row; the provider outcome is recorded on that same row.
    """

    def __init__(
        self,
        db: Session,
        email_provider=None,
        sms_provider=None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.db = db
        self.repo = NotificationRepository()
        self.email_provider = email_provider or get_email_provider()
        self.sms_provider = sms_provider or get_sms_provider()
        self.retry_config = retry_config or RetryConfig.from_env()

    def provider_for(self, channel: str):
        return self.sms_provider if channel == "sms" else self.email_provider

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, message: NotificationMessage) -> NotificationResult:
        setting = self.repo.get_setting(self.db, message.type)
        if not setting or not getattr(setting, f"{message.channel}_enabled", False):
            logger.info(f"⏭️ {message.type} via {message.channel} is disabled, skipping")
            return NotificationResult(
                success=False,
                skipped=True,
                error=f"{message.channel} notifications disabled for {message.type}",
            )

        if message.customer_id is not None:
            customer = self.repo.get_customer(self.db, message.customer_id)
            allowed, reason = check_notification_allowed(customer, message.type, message.channel)
            if not allowed:
                logger.info(f"⏭️ {message.type} blocked for customer {message.customer_id}: {reason}")
                return self._failed_attempt(message, reason)

        template = self.repo.get_active_template(self.db, message.type, message.channel)
        if not template:
            logger.error(f"❌ No active template for {message.type}/{message.channel}")
            return self._failed_attempt(message, f"No active template for {message.type} ({message.channel})")

        missing = missing_required_variables(template.variables, message.template_data)
        if missing:
            logger.error(f"❌ {message.type} missing template variables: {', '.join(missing)}")
            return self._failed_attempt(
                message,
                f"Missing required template variables: {', '.join(missing)} (validation)",
                template_id=template.id,
            )

        rendered = render_template(template, message.template_data)
        for warning in rendered.warnings:
            logger.warning(f"⚠️ {message.type}/{message.channel}: {warning}")

        log = self.repo.create_log(
            self.db,
            customer_id=message.customer_id,
            type=message.type,
            channel=message.channel,
            recipient=message.recipient,
            subject=rendered.subject,
            content=rendered.text,
            html_content=rendered.html,
            template_id=template.id,
            template_data=message.template_data,
            status="pending",
            retry_after=in_flight_until(),
        )

        send_result = await self.deliver(log)
        return self._record_first_attempt(log, send_result)

    async def send_batch(self, messages: list[NotificationMessage]) -> list[NotificationResult]:
        """Send in chunks of BATCH_CHUNK_SIZE with a short pause between chunks"""
        results: list[NotificationResult] = []
        for start in range(0, len(messages), BATCH_CHUNK_SIZE):
            chunk = messages[start : start + BATCH_CHUNK_SIZE]
            results.extend(await asyncio.gather(*(self.send(message) for message in chunk)))
            if start + BATCH_CHUNK_SIZE < len(messages):
                await asyncio.sleep(BATCH_PAUSE_SECONDS)

        sent = sum(1 for r in results if r.success)
        logger.info(f"📤 Batch complete: {sent}/{len(messages)} sent")
        return results

    async def notify_customer(
        self, notification_type: str, customer: Customer, template_data: dict
    ) -> list[NotificationResult]:
        """Send on every channel the customer can be reached on; settings decide which go out"""
        results = []
        for channel, recipient in (("email", customer.email), ("sms", customer.phone)):
            if not recipient:
                continue
            results.append(
                await self.send(
                    NotificationMessage(
                        type=notification_type,
                        channel=channel,
                        recipient=recipient,
                        template_data=template_data,
                        customer_id=customer.id,
                    )
                )
            )
        return results

    async def deliver(self, log: NotificationLog) -> SendResult:
        """Hand a logged message to its channel provider; never raises"""
        provider = self.provider_for(log.channel)
        try:
            return await provider.send(
                log.recipient,
                log.content or "",
                subject=log.subject,
                html=log.html_content,
            )
        except ProviderError as e:
            logger.error(f"❌ {log.channel} provider error for log {log.id}: {e.message}")
            return SendResult(success=False, error=e.message, status_code=e.status_code)
        except Exception as e:
            logger.error(f"❌ Unexpected {log.channel} provider failure for log {log.id}: {e}")
            return SendResult(success=False, error=str(e))

    async def resend_log(self, log_id: int) -> NotificationResult:
        """Re-dispatch a failed log as a new attempt with the same content"""
        original = self.repo.get_log(self.db, log_id)
        if not original:
            raise NotFoundError("Notification not found")
        if original.status != "failed":
            raise ValidationError("Only failed notifications can be resent")

        if original.content is None:
            # Never rendered (preference or template failure): run the full flow again
            return await self.send(
                NotificationMessage(
                    type=original.type,
                    channel=original.channel,
                    recipient=original.recipient,
                    template_data=original.template_data or {},
                    customer_id=original.customer_id,
                )
            )

        log = self.repo.create_log(
            self.db,
            customer_id=original.customer_id,
            type=original.type,
            channel=original.channel,
            recipient=original.recipient,
            subject=original.subject,
            content=original.content,
            html_content=original.html_content,
            template_id=original.template_id,
            template_data=original.template_data,
            status="pending",
            retry_after=in_flight_until(),
        )
        logger.info(f"🔄 Resending notification {log_id} as {log.id}")

        send_result = await self.deliver(log)
        return self._record_first_attempt(log, send_result)

    def was_recently_sent(self, customer_id: int, notification_type: str, channel: str, window: timedelta) -> bool:
        since = datetime.utcnow() - window
        return self.repo.has_recent_sent(self.db, customer_id, notification_type, channel, since)

    # ------------------------------------------------------------------
    # Log bookkeeping
    # ------------------------------------------------------------------

    def _failed_attempt(
        self, message: NotificationMessage, error: str, template_id: Optional[int] = None
    ) -> NotificationResult:
        """Record an attempt that failed before reaching a provider; never retried"""
        log = self.repo.create_log(
            self.db,
            customer_id=message.customer_id,
            type=message.type,
            channel=message.channel,
            recipient=message.recipient,
            template_id=template_id,
            template_data=message.template_data,
            status="failed",
            error_message=error,
        )
        return NotificationResult(success=False, log_id=log.id, error=error)

    def _record_first_attempt(self, log: NotificationLog, send_result: SendResult) -> NotificationResult:
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
            return NotificationResult(success=True, log_id=log.id, message_id=send_result.message_id)

        classified = classify_error(send_result.error, send_result.status_code)
        retry_after = calculate_retry_after(0, self.retry_config) if classified.retryable else None
        error = f"{classified.message} ({classified.type})"
        self.repo.update_log(self.db, log, status="failed", error_message=error, retry_after=retry_after)

        if retry_after:
            logger.warning(f"⚠️ {log.type} to {log.recipient} failed ({classified.type}), retry at {retry_after}")
        else:
            logger.error(f"❌ {log.type} to {log.recipient} failed permanently: {error}")
        return NotificationResult(success=False, log_id=log.id, error=error)
