# bukkapay/core/security.py
from passlib.hash import argon2
from bukkapay.core.config import settings
from jose import jwt, JWTError
from pathlib import Path
from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import os
import secrets
import uuid


def _peppered(password: str) -> str:
    # The pepper lives in configuration, never in the database.
    if not settings.PASSWORD_PEPPER:
        return password
    return hmac.new(
        settings.PASSWORD_PEPPER.encode(), password.encode(), hashlib.sha256
    ).hexdigest()


def hash_password(password: str) -> str:
    return argon2.using(
        rounds=settings.ARGON2_TIME_COST,
        memory_cost=settings.ARGON2_MEMORY_COST,
        parallelism=settings.ARGON2_PARALLELISM,
    ).hash(_peppered(password))


def verify_password(hash: str, password: str) -> bool:
    try:
        return argon2.verify(_peppered(password), hash)
    except (ValueError, TypeError):
        return False


def hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def generate_wallet_id() -> str:
    return f"BKP-{secrets.token_hex(8).upper()}"


def generate_card_number() -> str:
    return f"**** {secrets.randbelow(10_000):04d}"


def _load_key(path: str | None) -> str | None:
    if not path:
        return None
    p = Path(path)
    if p.exists():
        return p.read_text()
    return os.getenv(path)


def uses_key_pair() -> bool:
    return bool(settings.JWT_PRIVATE_KEY_PATH and settings.JWT_PUBLIC_KEY_PATH)


def _algorithm() -> str:
    return "RS256" if uses_key_pair() else settings.JWT_ALGORITHM


def _get_signing_key() -> str:
    if not uses_key_pair():
        return settings.JWT_SECRET_KEY
    key = _load_key(settings.JWT_PRIVATE_KEY_PATH)
    if not key:
        raise RuntimeError("JWT private key not found. Set JWT_PRIVATE_KEY_PATH")
    return key


def get_public_key() -> str | None:
    if not uses_key_pair():
        return None
    key = _load_key(settings.JWT_PUBLIC_KEY_PATH)
    if not key:
        raise RuntimeError("JWT public key not found. Set JWT_PUBLIC_KEY_PATH")
    return key


def _get_verification_key() -> str:
    return get_public_key() or settings.JWT_SECRET_KEY


def _encode(payload: dict) -> str:
    headers = {"kid": settings.JWT_KEY_ID} if uses_key_pair() else None
    return jwt.encode(payload, _get_signing_key(), algorithm=_algorithm(), headers=headers)


def create_access_token(
    subject: str, session_id: str, extra_claims: dict | None = None
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(subject),
        "sid": session_id,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "typ": "access",
    }
    if extra_claims:
        payload.update(extra_claims)
    return _encode(payload)


def create_refresh_token(subject: str, session_id: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        "sub": str(subject),
        "sid": session_id,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "typ": "refresh",
    }
    return _encode(payload)


def decode_token(token: str, expected_type: str | None = None) -> dict:
    """
    Verifies signature and expiry. Raises JWTError when the token is invalid
    or is not of the expected type.
    """
    payload = jwt.decode(token, _get_verification_key(), algorithms=[_algorithm()])
    if expected_type is not None and payload.get("typ") != expected_type:
        raise JWTError("Invalid token type")
    return payload
