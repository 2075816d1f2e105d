# bukkapay/models/user.py
import sqlalchemy as sa
import uuid
from datetime import datetime, timezone
from bukkapay.db.db import Base


def _now():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = sa.Column(sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    wallet_id = sa.Column(sa.String(32), unique=True, nullable=False, index=True)
    name = sa.Column(sa.String(255), nullable=False)
    email = sa.Column(sa.String(255), unique=True, nullable=False, index=True)
    username = sa.Column(sa.String(64), unique=True, nullable=False, index=True)
    phone = sa.Column(sa.String(32), nullable=True)
    country_code = sa.Column(sa.String(8), nullable=True, default="+1")
    hashed_password = sa.Column(sa.String(512), nullable=False)
    verified = sa.Column(sa.Boolean, default=False, nullable=False)
    is_active = sa.Column(sa.Boolean, default=True, nullable=False)
    is_superuser = sa.Column(sa.Boolean, default=False, nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), default=_now, nullable=False)


class Session(Base):
    __tablename__ = "sessions"
    id = sa.Column(sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = sa.Column(
        sa.String(36),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    refresh_token_hash = sa.Column(sa.String(128), nullable=False, index=True)
    revoked = sa.Column(sa.Boolean, default=False, nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), default=_now, nullable=False)
    expires_at = sa.Column(sa.DateTime(timezone=True), nullable=False)
    last_seen_at = sa.Column(sa.DateTime(timezone=True), nullable=True)
