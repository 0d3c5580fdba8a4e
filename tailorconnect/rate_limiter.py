"""
Redis fixed-window rate limiting

Only active when REDIS_URL is configured. Redis failures fail open: a
broken limiter never blocks bookings.
"""

import logging
import time
from typing import Optional

import redis
from fastapi import Depends, HTTPException, status

from .auth import Actor, get_current_actor
from .config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get or create the Redis client; None when rate limiting is not configured"""
    global redis_client

    if not REDIS_URL:
        return None

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for rate limiting...")
        redis_client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    return redis_client


def check_rate_limit(
    client: redis.Redis, key: str, limit: int, window_seconds: int
) -> tuple[bool, int, int]:
    """
    Count one request against a fixed window.

    Returns:
        Tuple of (is_allowed, current_count, retry_after_seconds)
    """
    window = int(time.time()) // window_seconds
    window_key = f"{key}:{window}"
    pipe = client.pipeline()
    pipe.incr(window_key)
    pipe.expire(window_key, window_seconds)
    count, _ = pipe.execute()
    retry_after = window_seconds - int(time.time()) % window_seconds
    return count <= limit, count, retry_after


async def booking_rate_limit(actor: Actor = Depends(get_current_actor)) -> None:
    """Dependency limiting how fast one actor can create bookings"""
    client = get_redis_client()
    if client is None:
        return

    try:
        allowed, count, retry_after = check_rate_limit(
            client,
            f"rate_limit:bookings:{actor.id}",
            BOOKING_RATE_LIMIT,
            BOOKING_RATE_WINDOW_SECONDS,
        )
    except redis.RedisError as e:
        logger.warning(f"⚠️ Rate limiter unavailable, allowing request: {e}")
        return

    if not allowed:
        logger.warning(f"🚫 Booking rate limit exceeded for {actor.id} ({count} requests)")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many booking requests. Please try again shortly.",
            headers={"Retry-After": str(retry_after)},
        )
