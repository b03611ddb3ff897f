"""
Redis fixed-window rate limiting for public endpoints
"""

import logging
import os
import time
from typing import Optional

import redis
from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports REDIS_URL (managed Redis) or individual host/port settings
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for rate limiting...")

        if config.REDIS_URL:
            redis_client = redis.from_url(
                config.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        else:
            redis_client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )

    return redis_client


def check_rate_limit(key: str, limit: int, window_seconds: int, client: redis.Redis) -> tuple[bool, int, int]:
    """
    Count this request in the current window.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    window = int(time.time()) // window_seconds
    window_key = f"{key}:{window}"

    pipe = client.pipeline()
    pipe.incr(window_key)
    pipe.expire(window_key, window_seconds)
    count, _ = pipe.execute()

    ttl = window_seconds - int(time.time()) % window_seconds
    return count <= limit, count, ttl


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a per-IP rate limiter dependency

    Example usage:
        availability_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="availability")

        @router.get("/availability", dependencies=[Depends(availability_limit)])
    """

    async def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return

        key = f"{key_prefix}:{client_ip(request)}"
        try:
            is_allowed, count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())
        except redis.RedisError as e:
            # Fail open
            logger.warning(f"⚠️ Rate limiting unavailable, allowing request: {e}")
            return

        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {count}/{limit} requests")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "retry_after": ttl,
                },
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
