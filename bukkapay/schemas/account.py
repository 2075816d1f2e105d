# bukkapay/schemas/account.py
from pydantic import Field
from decimal import Decimal
from typing import Optional
from datetime import datetime
from bukkapay.models.account import AccountStatus
from bukkapay.schemas.common import CamelModel


class AccountCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=64)
    currency: Optional[str] = None
    icon: str = "wallet"
    color: str = "blue"


class AccountOut(CamelModel):
    id: str
    owner_user_id: str
    title: str
    card_number: str
    icon: str
    color: str
    currency: str
    balance: Decimal
    status: AccountStatus
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BalanceOut(CamelModel):
    account_id: str
    balance: Decimal
    currency: str


class DepositIn(CamelModel):
    amount: Decimal
    idempotency_key: str
    description: Optional[str] = Field(None, max_length=255)
