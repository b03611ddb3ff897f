from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from app.domain.notifications.errors import RetryConfig, in_flight_until
from app.domain.notifications.providers import SendResult
from app.domain.notifications.retry import RetryManager
from app.domain.notifications.schemas import NotificationMessage
from app.domain.notifications.service import NotificationService
from app.models import NotificationLog

CONFIG = RetryConfig(max_retries=2, base_delay=30, max_delay=300, jitter_factor=0.0)


def _failed_log(db, retry_count: int = 0, due: bool = True, **kwargs) -> NotificationLog:
    data = {
        "type": "appointment_reminder",
        "channel": "sms",
        "recipient": "+16575551234",
        "content": "Reminder: Biscuit is booked tomorrow",
        "status": "failed",
        "retry_count": retry_count,
        "retry_after": datetime.utcnow() + (timedelta(minutes=-1) if due else timedelta(minutes=10)),
        "error_message": "Service unavailable (transient)",
    }
    data.update(kwargs)
    log = NotificationLog(**data)
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def _manager(db) -> RetryManager:
    return RetryManager(db, notification_service=NotificationService(db, retry_config=CONFIG), retry_config=CONFIG)


def _reload(db, log_id: int) -> NotificationLog:
    db.expire_all()
    return db.query(NotificationLog).filter(NotificationLog.id == log_id).one()


def test_due_retry_succeeds(db, sms_provider) -> None:
    log = _failed_log(db)

    result = asyncio.run(_manager(db).process_retries())

    assert (result.processed, result.succeeded, result.failed) == (1, 1, 0)
    row = _reload(db, log.id)
    assert row.status == "sent"
    assert row.retry_after is None
    assert row.message_id == "sms-1"
    assert sms_provider.sent[0]["body"] == "Reminder: Biscuit is booked tomorrow"


def test_not_yet_due_is_left_alone(db, sms_provider) -> None:
    log = _failed_log(db, due=False)

    result = asyncio.run(_manager(db).process_retries())

    assert result.processed == 0
    assert sms_provider.sent == []
    assert _reload(db, log.id).status == "failed"


def test_permanent_failures_without_retry_after_are_never_picked(db, sms_provider) -> None:
    _failed_log(db, retry_after=None, error_message="Missing required template variables: pet_name (validation)")

    result = asyncio.run(_manager(db).process_retries())

    assert result.processed == 0
    assert sms_provider.sent == []


def test_retryable_failure_reschedules_with_backoff(db, sms_provider) -> None:
    log = _failed_log(db, retry_count=0)
    sms_provider.responses.append(SendResult(success=False, error="Too many requests", status_code=429))

    before = datetime.utcnow()
    result = asyncio.run(_manager(db).process_retries())

    assert result.failed == 1
    assert result.errors[0].log_id == log.id
    row = _reload(db, log.id)
    assert row.status == "failed"
    assert row.retry_count == 1
    assert row.error_message == "Too many requests (rate_limit)"
    # base 30 * 2**1
    assert before + timedelta(seconds=59) <= row.retry_after <= datetime.utcnow() + timedelta(seconds=61)


def test_last_retry_exhausts_the_record(db, sms_provider) -> None:
    log = _failed_log(db, retry_count=1)
    sms_provider.responses.append(SendResult(success=False, error="Service unavailable", status_code=503))

    asyncio.run(_manager(db).process_retries())

    row = _reload(db, log.id)
    assert row.status == "failed"
    assert row.retry_count == 2
    assert row.retry_after is None
    assert row.error_message == "Service unavailable (Max retries exceeded)"


def test_non_retryable_failure_stops_retrying(db, sms_provider) -> None:
    log = _failed_log(db)
    sms_provider.responses.append(SendResult(success=False, error="Number blocked", status_code=403))

    asyncio.run(_manager(db).process_retries())

    row = _reload(db, log.id)
    assert row.retry_count == 1
    assert row.retry_after is None
    assert row.error_message == "Number blocked (Non-retryable error)"


def test_record_at_max_retries_never_returns_to_pending(db, sms_provider) -> None:
    log = _failed_log(db, retry_count=2)

    result = asyncio.run(_manager(db).process_retries())

    assert result.processed == 0
    row = _reload(db, log.id)
    assert row.status == "failed"
    assert row.retry_count == 2


def test_retry_count_is_monotonic_across_sweeps(db, sms_provider) -> None:
    log = _failed_log(db)
    sms_provider.responses.extend(
        [
            SendResult(success=False, error="Service unavailable", status_code=503),
            SendResult(success=False, error="Service unavailable", status_code=503),
        ]
    )
    manager = _manager(db)

    counts = []
    for _ in range(4):
        asyncio.run(manager.process_retries(now=datetime.utcnow() + timedelta(hours=1)))
        counts.append(_reload(db, log.id).retry_count)

    assert counts == sorted(counts)
    assert counts[-1] == 2
    assert len(sms_provider.sent) == 2


def test_claimed_row_is_skipped_by_a_second_sweep(db, sms_provider) -> None:
    # Another worker claimed it moments ago
    log = _failed_log(db, status="pending", retry_after=in_flight_until())

    result = asyncio.run(_manager(db).process_retries())

    assert result.processed == 0
    assert sms_provider.sent == []


def test_row_abandoned_mid_retry_is_recovered(db, sms_provider) -> None:
    log = _failed_log(db, retry_count=1)

    async def crash(*args, **kwargs):
        raise asyncio.CancelledError()

    sms_provider.send = crash
    with pytest.raises(asyncio.CancelledError):
        asyncio.run(_manager(db).process_retries())

    stuck = _reload(db, log.id)
    assert stuck.status == "pending"
    assert stuck.retry_after > datetime.utcnow()

    del sms_provider.send
    later = datetime.utcnow() + timedelta(minutes=10)
    result = asyncio.run(_manager(db).process_retries(now=later))

    assert (result.processed, result.succeeded) == (1, 1)
    row = _reload(db, log.id)
    assert row.status == "sent"
    assert row.retry_count == 1


def test_first_attempt_that_never_finished_is_picked_up(db, seed, sms_provider) -> None:
    seed.enable("appointment_reminder")
    seed.template("appointment_reminder", "sms", "Biscuit is booked tomorrow")
    message = NotificationMessage(type="appointment_reminder", channel="sms", recipient="+16575551234")

    async def crash(*args, **kwargs):
        raise asyncio.CancelledError()

    sms_provider.send = crash
    with pytest.raises(asyncio.CancelledError):
        asyncio.run(NotificationService(db, retry_config=CONFIG).send(message))
    del sms_provider.send

    log = db.query(NotificationLog).one()
    assert _reload(db, log.id).status == "pending"
    assert asyncio.run(_manager(db).process_retries()).processed == 0

    result = asyncio.run(_manager(db).process_retries(now=datetime.utcnow() + timedelta(minutes=10)))

    assert result.succeeded == 1
    assert sms_provider.sent[0]["body"] == "Biscuit is booked tomorrow"
