import enum
import uuid
from sqlalchemy import Column, String, Numeric, DateTime, Enum, ForeignKey
from datetime import datetime, timezone
from bukkapay.db.db import Base


class PaymentRequestStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    expired = "expired"
    cancelled = "cancelled"


class PaymentRequest(Base):
    __tablename__ = "payment_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    requester_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    currency = Column(String(8), nullable=False)
    recipient_name = Column(String(255), nullable=True)
    recipient_phone = Column(String(32), nullable=True)
    note = Column(String(255), nullable=True)
    status = Column(
        Enum(PaymentRequestStatus, native_enum=False, length=16),
        default=PaymentRequestStatus.pending,
        nullable=False,
    )
    transfer_id = Column(String(36), nullable=True)
    paid_by_user_id = Column(String(36), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
