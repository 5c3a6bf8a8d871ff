"""
Redis client configuration
"""

import redis
from rq import Queue
from paychain.infrastructure.settings import get_settings

settings = get_settings()

# Create Redis connection pool
# RQ stores pickled job payloads, so responses are not decoded
redis_pool = redis.ConnectionPool.from_url(settings.REDIS_URL)
redis_client = redis.Redis(connection_pool=redis_pool)


def get_redis() -> redis.Redis:
    """Get Redis client instance"""
    return redis_client


def ping_redis() -> bool:
    """Ping Redis to check connectivity"""
    try:
        return bool(redis_client.ping())
    except redis.RedisError:
        return False


def get_queue(name: str) -> Queue:
    """RQ queue bound to the shared Redis connection"""
    return Queue(name, connection=redis_client)
