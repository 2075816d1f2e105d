# bukkapay/core/redis.py
from typing import Optional
from redis.asyncio import Redis, ConnectionPool

_redis_client: Optional[Redis] = None


def init_redis(url: str | None) -> None:
    global _redis_client
    if _redis_client is None and url:
        pool = ConnectionPool.from_url(url, decode_responses=False)
        _redis_client = Redis(connection_pool=pool)


def get_redis() -> Optional[Redis]:
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
