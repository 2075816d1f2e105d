import enum
import uuid
from sqlalchemy import (
    Column,
    String,
    Numeric,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    func,
)
from bukkapay.db.db import Base


class AccountStatus(str, enum.Enum):
    active = "active"
    frozen = "frozen"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(
        String(32),
        primary_key=True,
        default=lambda: f"ACC-{uuid.uuid4().hex[:12]}",
    )

    owner_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    title = Column(String(64), nullable=False, default="Main")
    card_number = Column(String(16), nullable=False)
    icon = Column(String(32), nullable=False, default="wallet")
    color = Column(String(32), nullable=False, default="blue")

    currency = Column(String(8), nullable=False, default="USD")

    balance = Column(Numeric(18, 2), nullable=False, default=0)

    status = Column(
        Enum(AccountStatus, native_enum=False, length=16),
        default=AccountStatus.active,
        nullable=False,
    )
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )
