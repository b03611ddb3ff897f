from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.domain.notifications.errors import (
    RetryConfig,
    calculate_retry_after,
    calculate_retry_delay,
    classify_error,
    has_exceeded_max_retries,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [(429, "rate_limit"), (500, "transient"), (503, "transient"), (400, "validation"), (422, "validation"), (404, "permanent")],
)
def test_classify_by_status_code(status_code: int, expected: str) -> None:
    assert classify_error("provider said no", status_code).type == expected


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("read ECONNRESET", "transient"),
        ("Twilio request timeout: timed out", "transient"),
        ("Too Many Requests", "rate_limit"),
        ("monthly quota exceeded", "rate_limit"),
        ("Invalid 'To' phone number", "validation"),
        ("Account suspended", "permanent"),
    ],
)
def test_classify_by_message(message: str, expected: str) -> None:
    classified = classify_error(message)
    assert classified.type == expected
    assert classified.retryable is (expected in ("transient", "rate_limit"))


def test_missing_message_is_permanent() -> None:
    classified = classify_error(None)
    assert classified.type == "permanent"
    assert classified.message == "Unknown error"


def test_retry_delay_without_jitter_doubles_then_caps() -> None:
    config = RetryConfig(base_delay=30, max_delay=300, jitter_factor=0.0)
    assert [calculate_retry_delay(n, config) for n in range(6)] == [30, 60, 120, 240, 300, 300]


def test_retry_delay_jitter_bounds() -> None:
    config = RetryConfig(base_delay=30, max_delay=300, jitter_factor=0.3)
    assert calculate_retry_delay(1, config, rand=lambda: 0.0) == 42
    assert calculate_retry_delay(1, config, rand=lambda: 1.0) == 78
    assert calculate_retry_delay(1, config, rand=lambda: 0.5) == 60


def test_retry_after_is_relative_to_now() -> None:
    now = datetime(2030, 1, 7, 12, 0)
    config = RetryConfig(jitter_factor=0.0)
    assert calculate_retry_after(0, config, now=now) == now + timedelta(seconds=30)


def test_has_exceeded_max_retries() -> None:
    assert not has_exceeded_max_retries(1, 2)
    assert has_exceeded_max_retries(2, 2)
