"""
Notification error classification and retry backoff

transient and rate_limit failures are retried; validation and permanent
failures are final.
"""

import random
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from ... import config

TRANSIENT = "transient"
RATE_LIMIT = "rate_limit"
VALIDATION = "validation"
PERMANENT = "permanent"

RETRYABLE_ERROR_TYPES = (TRANSIENT, RATE_LIMIT)

# A pending row older than this was dropped mid-delivery and is due again
IN_FLIGHT_SECONDS = 300

NETWORK_ERROR_MARKERS = (
    "econnreset",
    "etimedout",
    "econnrefused",
    "ehostunreach",
    "enetunreach",
    "enotfound",
    "network",
    "timeout",
    "connection refused",
    "connection reset",
    "socket hang up",
)

RATE_LIMIT_MARKERS = (
    "rate limit",
    "too many requests",
    "429",
    "throttled",
    "quota exceeded",
)

VALIDATION_MARKERS = (
    "invalid",
    "validation",
    "malformed",
    "bad request",
    "missing required",
    "format",
    "not valid",
    "unprocessable",
)


class ClassifiedError(BaseModel):
    type: str
    message: str
    retryable: bool
    status_code: Optional[int] = None


class RetryConfig(BaseModel):
    max_retries: int = 2
    base_delay: int = 30  # seconds
    max_delay: int = 300  # seconds
    jitter_factor: float = 0.3

    @classmethod
    def from_env(cls) -> "RetryConfig":
        return cls(
            max_retries=config.NOTIFICATION_MAX_RETRIES,
            base_delay=config.NOTIFICATION_RETRY_BASE_DELAY,
            max_delay=config.NOTIFICATION_RETRY_MAX_DELAY,
            jitter_factor=config.NOTIFICATION_RETRY_JITTER,
        )


def _contains_any(message: str, markers: tuple) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in markers)


def _classified(error_type: str, message: str, status_code: Optional[int]) -> ClassifiedError:
    return ClassifiedError(
        type=error_type,
        message=message,
        retryable=error_type in RETRYABLE_ERROR_TYPES,
        status_code=status_code,
    )


def classify_error(message: Optional[str], status_code: Optional[int] = None) -> ClassifiedError:
    """Classify a provider failure by HTTP status first, then by message keywords"""
    message = message or "Unknown error"

    if status_code:
        if status_code == 429:
            return _classified(RATE_LIMIT, message, status_code)
        if status_code >= 500:
            return _classified(TRANSIENT, message, status_code)
        if 400 <= status_code < 500:
            error_type = VALIDATION if status_code in (400, 422) else PERMANENT
            return _classified(error_type, message, status_code)

    if _contains_any(message, NETWORK_ERROR_MARKERS):
        return _classified(TRANSIENT, message, status_code)
    if _contains_any(message, RATE_LIMIT_MARKERS):
        return _classified(RATE_LIMIT, message, status_code)
    if _contains_any(message, VALIDATION_MARKERS):
        return _classified(VALIDATION, message, status_code)

    return _classified(PERMANENT, message, status_code)


def calculate_retry_delay(
    retry_count: int,
    retry_config: Optional[RetryConfig] = None,
    rand: Callable[[], float] = random.random,
) -> int:
    """
    Seconds to wait before the next attempt.

    base * 2**retry_count, capped at max_delay, then spread by +/- jitter_factor.
    """
    retry_config = retry_config or RetryConfig()
    capped = min(retry_config.base_delay * (2**retry_count), retry_config.max_delay)
    jitter = (rand() * 2 - 1) * capped * retry_config.jitter_factor
    return round(max(0, capped + jitter))


def calculate_retry_after(
    retry_count: int,
    retry_config: Optional[RetryConfig] = None,
    now: Optional[datetime] = None,
) -> datetime:
    now = now or datetime.utcnow()
    return now + timedelta(seconds=calculate_retry_delay(retry_count, retry_config))


def has_exceeded_max_retries(retry_count: int, max_retries: int) -> bool:
    return retry_count >= max_retries


def in_flight_until(now: Optional[datetime] = None) -> datetime:
    """Deadline after which a pending (claimed) row is considered abandoned"""
    return (now or datetime.utcnow()) + timedelta(seconds=IN_FLIGHT_SECONDS)
