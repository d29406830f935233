## app/core/redis.py

# Standard library imports
from typing import Optional, Protocol

# Third party imports
import redis

# Local imports
from app.core.config import settings


class KeyValueCache(Protocol):
    """
    The subset of cache operations the service relies on.
    A ttl of None or 0 stores the value without expiry.
    """

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    def delete(self, *keys: str) -> None: ...


class RedisCache:
    """
    KeyValueCache backed by a redis-py client
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            self.client.set(key, value, ex=ttl)
        else:
            self.client.set(key, value)

    def delete(self, *keys: str) -> None:
        if keys:
            self.client.delete(*keys)


def create_redis_client() -> redis.Redis:
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


# Synchronous redis connection
def get_redis_db():
    """
    Method for obtaining a cache session object
    """
    redis_session = create_redis_client()
    try:
        yield RedisCache(redis_session)
    finally:
        redis_session.close()
