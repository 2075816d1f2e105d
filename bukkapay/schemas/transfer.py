from pydantic import Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from bukkapay.models.transfer import EntryDirection, TransferKind, TransferStatus
from bukkapay.schemas.common import CamelModel
from bukkapay.services.ledger import DestinationType


class TransferDestinationIn(CamelModel):
    type: DestinationType = DestinationType.account
    id: str = Field(..., min_length=1, max_length=128)


class TransferCreate(CamelModel):
    source_account_id: str
    destination: TransferDestinationIn
    amount: Decimal
    currency: str
    idempotency_key: str
    description: Optional[str] = Field(None, max_length=255)


class TransferRecordOut(CamelModel):
    id: int
    transfer_id: str
    account_id: str
    direction: EntryDirection
    kind: TransferKind
    source_account_id: Optional[str]
    destination_account_id: Optional[str]
    external_reference: Optional[str]
    amount: Decimal
    signed_amount: Decimal
    currency: str
    balance_after: Decimal
    status: TransferStatus
    idempotency_key: str
    description: Optional[str]
    created_at: Optional[datetime]


class TransferOut(CamelModel):
    transfer_id: str
    kind: TransferKind
    status: TransferStatus
    amount: Decimal
    currency: str
    source_account_id: Optional[str]
    destination_account_id: Optional[str]
    external_reference: Optional[str]
    source_balance: Optional[Decimal]
    destination_balance: Optional[Decimal]
    idempotency_key: str
    description: Optional[str]
    created_at: Optional[datetime]
    replayed: bool = False


class TransferDetailOut(TransferOut):
    records: List[TransferRecordOut]


class RecordPage(CamelModel):
    items: List[TransferRecordOut]
    next_cursor: Optional[str] = None


class SettleIn(CamelModel):
    success: bool


class DailyLimitIn(CamelModel):
    daily_limit: Decimal = Field(..., ge=20000)
