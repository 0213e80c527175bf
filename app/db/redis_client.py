"""
Redis Connection Utility

Redis backs:
- RQ job queues (one named queue per task type)
- AI result cache (SETEX keys ai:{operation}:{hash})
- AI usage counters (hash per provider per day)
"""
import logging

from redis import Redis
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

_redis: Redis = None


def get_redis() -> Redis:
    """Get or create the shared Redis connection (singleton pattern)"""
    global _redis
    if _redis is None:
        # RQ stores pickled payloads, so responses must stay as bytes
        _redis = Redis.from_url(settings.redis_url)
    return _redis


def test_redis_connection() -> bool:
    """
    Test if Redis is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        return bool(get_redis().ping())
    except Exception as e:
        logger.warning("Redis connection failed: %s", e)
        return False
