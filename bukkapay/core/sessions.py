# bukkapay/core/sessions.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.exceptions import AuthenticationError
from bukkapay.core.security import decode_token
from bukkapay.db.db import get_db
from bukkapay.models.user import Session, User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# last_seen_at is written at most this often per session
TOUCH_INTERVAL = timedelta(minutes=1)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def resolve(db: AsyncSession, token: str) -> Dict[str, Any]:
    """Resolve a bearer access token to the identity of its session."""
    try:
        payload = decode_token(token, expected_type="access")
    except JWTError:
        raise AuthenticationError("Invalid token")

    session = await db.get(Session, payload.get("sid"))
    now = datetime.now(timezone.utc)
    if (
        session is None
        or session.revoked
        or as_utc(session.expires_at) <= now
        or session.user_id != payload.get("sub")
    ):
        raise AuthenticationError("Session expired or revoked")

    user = await db.get(User, session.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User is inactive")

    last_seen = as_utc(session.last_seen_at)
    if last_seen is None or now - last_seen > TOUCH_INTERVAL:
        session.last_seen_at = now
        await db.commit()

    return {
        "sub": user.id,
        "sid": session.id,
        "email": user.email,
        "wallet_id": user.wallet_id,
        "is_superuser": bool(user.is_superuser),
    }


async def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    if not creds:
        raise AuthenticationError("Not authenticated")
    return await resolve(db, creds.credentials)
