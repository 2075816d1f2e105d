from fastapi import Request
from datetime import datetime, timezone
from bukkapay.core.exceptions import LedgerError
from bukkapay.core.redis import get_redis
import logging

logger = logging.getLogger(__name__)


class TooManyRequests(LedgerError):
    """Too many requests."""

    kind = "rate_limited"
    status_code = 429


def sanitize_path(path: str) -> str:
    return path.replace("/", ":")


async def rate_limit_dependency(
    request: Request, user_id: str | None = None, limit: int = 60, period: int = 60
):
    client = get_redis()
    if client is None:
        return

    ts = int(datetime.now(timezone.utc).timestamp())
    window = ts - (ts % period)
    path = sanitize_path(request.url.path)
    uid = user_id or (request.client.host if request.client else None) or "anon"
    key = f"ratelimit:{uid}:{path}:{window}"
    try:
        val = await client.incr(key)
        if val == 1:
            await client.expire(key, period)
    except Exception as e:
        # Redis outages never block money movement.
        logger.warning("Rate limit check failed (redis): %s", e)
        return
    if val > limit:
        raise TooManyRequests(f"Rate limit of {limit} requests per {period}s exceeded")
