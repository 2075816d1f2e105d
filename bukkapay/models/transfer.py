import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Enum,
    Numeric,
    DateTime,
    UniqueConstraint,
    Index,
)
from datetime import datetime, timezone
from bukkapay.db.db import Base


class TransferStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class EntryDirection(str, enum.Enum):
    debit = "debit"
    credit = "credit"


class TransferKind(str, enum.Enum):
    own = "own"  # between two accounts of the same user
    p2p = "p2p"
    external = "external"
    deposit = "deposit"
    refund = "refund"


class TransferRecord(Base):
    """One leg of a balance movement. Rows are never updated except for status."""

    __tablename__ = "transfer_records"
    __table_args__ = (
        UniqueConstraint(
            "initiator_user_id",
            "idempotency_key",
            "direction",
            name="uq_transfer_records_idempotency",
        ),
        Index("ix_transfer_records_account_id_id", "account_id", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    transfer_id = Column(String(36), index=True, nullable=False)
    account_id = Column(String(32), nullable=False)
    direction = Column(Enum(EntryDirection, native_enum=False, length=8), nullable=False)
    kind = Column(Enum(TransferKind, native_enum=False, length=16), nullable=False)
    source_account_id = Column(String(32), nullable=True)
    destination_account_id = Column(String(32), nullable=True)
    external_reference = Column(String(128), nullable=True)
    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    currency = Column(String(8), nullable=False)
    balance_after = Column(Numeric(precision=18, scale=2), nullable=False)
    status = Column(
        Enum(TransferStatus, native_enum=False, length=16),
        default=TransferStatus.completed,
        nullable=False,
    )
    initiator_user_id = Column(String(36), nullable=False)
    idempotency_key = Column(String(128), nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @property
    def signed_amount(self):
        return -self.amount if self.direction == EntryDirection.debit else self.amount


class TransactionLimit(Base):
    __tablename__ = "transaction_limits"

    user_id = Column(String(36), primary_key=True)
    daily_limit = Column(Numeric(precision=18, scale=2), nullable=False, default=20000)
