# bukkapay/services/user_service.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from jose import JWTError
from bukkapay.core.config import settings
from bukkapay.core.exceptions import Conflict
from bukkapay.core.sessions import as_utc
from bukkapay.models.user import User, Session
from bukkapay.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_wallet_id,
    hash_refresh_token,
)
from bukkapay.services import account_store
from datetime import datetime, timedelta, timezone


async def create_user(
    db: AsyncSession,
    name: str,
    email: str,
    username: str,
    password: str,
    phone: str | None = None,
    country_code: str | None = None,
) -> User:
    res = await db.execute(select(User).where(User.email == email))
    if res.scalars().first():
        raise Conflict("Email already registered")
    res = await db.execute(select(User).where(User.username == username))
    if res.scalars().first():
        raise Conflict("Username already taken")

    user = User(
        name=name,
        email=email,
        username=username,
        phone=phone,
        country_code=country_code or "+1",
        hashed_password=hash_password(password),
        wallet_id=generate_wallet_id(),
    )
    db.add(user)
    try:
        await db.flush()
        await account_store.create_account(
            db, user.id, settings.DEFAULT_CURRENCY, title="Main", is_default=True
        )
        await db.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same email or username
        await db.rollback()
        raise Conflict("Email or username already registered")
    await db.refresh(user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    res = await db.execute(select(User).where(User.email == email))
    user = res.scalars().first()
    if not user or not user.is_active:
        return None
    if not verify_password(user.hashed_password, password):
        return None
    return user


def _issue(user_id: str, session: Session) -> dict:
    access = create_access_token(user_id, session.id)
    refresh = create_refresh_token(user_id, session.id)
    session.refresh_token_hash = hash_refresh_token(refresh)
    return {"access_token": access, "refresh_token": refresh}


async def create_session(db: AsyncSession, user: User) -> dict:
    now = datetime.now(timezone.utc)
    session = Session(
        user_id=user.id,
        refresh_token_hash="",
        created_at=now,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    db.add(session)
    await db.flush()
    tokens = _issue(user.id, session)
    await db.commit()
    return tokens


async def revoke_session(db: AsyncSession, session_id: str) -> bool:
    session = await db.get(Session, session_id)
    if not session or session.revoked:
        return False
    session.revoked = True
    await db.commit()
    return True


async def rotate_refresh(db: AsyncSession, raw_token: str) -> dict | None:
    try:
        payload = decode_token(raw_token, expected_type="refresh")
    except JWTError:
        return None

    session = await db.get(Session, payload.get("sid"))
    if (
        not session
        or session.revoked
        or session.user_id != payload.get("sub")
        or as_utc(session.expires_at) < datetime.now(timezone.utc)
    ):
        return None

    if session.refresh_token_hash != hash_refresh_token(raw_token):
        # an already rotated token came back: treat the session as stolen
        session.revoked = True
        await db.commit()
        return None

    tokens = _issue(session.user_id, session)
    await db.commit()
    return tokens
