from pydantic import Field
from decimal import Decimal
from typing import Optional
from datetime import datetime
from bukkapay.models.payment_request import PaymentRequestStatus
from bukkapay.schemas.common import CamelModel


class PaymentRequestCreate(CamelModel):
    amount: Decimal
    currency: str
    recipient_name: Optional[str] = Field(None, max_length=255)
    recipient_phone: Optional[str] = Field(None, max_length=32)
    note: Optional[str] = Field(None, max_length=255)


class PaymentRequestOut(CamelModel):
    id: str
    requester_user_id: str
    amount: Decimal
    currency: str
    recipient_name: Optional[str]
    recipient_phone: Optional[str]
    note: Optional[str]
    status: PaymentRequestStatus
    transfer_id: Optional[str]
    paid_by_user_id: Optional[str]
    created_at: Optional[datetime]
    expires_at: datetime


class PayRequestIn(CamelModel):
    source_account_id: str
    idempotency_key: str
