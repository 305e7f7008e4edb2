"""
Redis connection used by the rate limiter and the readiness probe
"""

import logging

import redis
from zyra.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Short timeouts: a missing Redis must not stall requests (the limiter fails open)
redis_client = redis.Redis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
    socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
)


def get_redis() -> redis.Redis:
    return redis_client


def ping_redis() -> bool:
    """True when Redis answers PING"""
    try:
        return bool(redis_client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
