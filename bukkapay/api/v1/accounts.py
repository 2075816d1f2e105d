# bukkapay/api/v1/accounts.py
import csv
import io
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.config import settings
from bukkapay.core.deps import require_superuser
from bukkapay.core.events import publish_event
from bukkapay.core.exceptions import AuthorizationError
from bukkapay.core.rate_limiter import rate_limit_dependency
from bukkapay.core.sessions import get_current_user
from bukkapay.db.db import get_db
from bukkapay.models.account import Account, AccountStatus
from bukkapay.schemas.account import AccountCreate, AccountOut, BalanceOut, DepositIn
from bukkapay.schemas.transfer import RecordPage, TransferOut
from bukkapay.services import account_store, ledger, transaction_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


async def rate_limit_dep(request: Request, user=Depends(get_current_user)):
    return await rate_limit_dependency(request, user_id=user["sub"], limit=60, period=60)


async def _owned_account(db: AsyncSession, account_id: str, user: dict) -> Account:
    account = await account_store.get_account(db, account_id)
    if user.get("sub") != account.owner_user_id and not user.get("is_superuser"):
        raise AuthorizationError("Forbidden")
    return account


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def create_account(
    payload: AccountCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    has_default = await account_store.get_default_account(db, user["sub"]) is not None
    account = await account_store.create_account(
        db,
        owner_user_id=user["sub"],
        currency=payload.currency or settings.DEFAULT_CURRENCY,
        title=payload.title,
        icon=payload.icon,
        color=payload.color,
        is_default=not has_default,
    )
    await db.commit()
    await db.refresh(account)

    await publish_event(
        "account.created",
        {
            "account_id": account.id,
            "owner_user_id": account.owner_user_id,
            "currency": account.currency,
        },
    )
    return account


@router.get("", response_model=List[AccountOut])
async def list_accounts(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await account_store.list_accounts(db, user["sub"])


@router.get("/{account_id}", response_model=AccountOut)
async def get_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await _owned_account(db, account_id, user)


@router.get("/{account_id}/balance", response_model=BalanceOut)
async def get_balance(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    account = await _owned_account(db, account_id, user)
    return BalanceOut(
        account_id=account.id,
        balance=account.balance,
        currency=account.currency,
    )


@router.patch("/{account_id}/status", response_model=AccountOut)
async def patch_status(
    account_id: str,
    status: AccountStatus,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_superuser),
):
    account = await account_store.set_status(db, account_id, status)
    await db.commit()
    await db.refresh(account)
    logger.info("Account %s set to %s by %s", account_id, status.value, user["sub"])

    await publish_event(
        "account.status_changed",
        {"account_id": account.id, "status": account.status.value},
    )
    return account


@router.post(
    "/{account_id}/deposits",
    response_model=TransferOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_dep)],
)
async def deposit(
    account_id: str,
    payload: DepositIn,
    response: Response,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await ledger.deposit(
        db,
        user["sub"],
        account_id,
        payload.amount,
        payload.idempotency_key,
        description=payload.description,
        is_superuser=user["is_superuser"],
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return TransferOut.model_validate(result)


@router.get("/{account_id}/transactions", response_model=RecordPage)
async def list_account_transactions(
    account_id: str,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await _owned_account(db, account_id, user)
    page = await transaction_log.list_for_account(db, account_id, limit, cursor)
    return RecordPage(items=page.items, next_cursor=page.next_cursor)


STATEMENT_COLUMNS = [
    "id",
    "created_at",
    "transfer_id",
    "direction",
    "kind",
    "status",
    "signed_amount",
    "currency",
    "balance_after",
    "description",
]


@router.get("/{account_id}/statement")
async def download_statement(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    await _owned_account(db, account_id, user)

    async def rows():
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(STATEMENT_COLUMNS)
        async for record in transaction_log.iter_for_account(db, account_id):
            writer.writerow(
                [
                    record.id,
                    record.created_at.isoformat() if record.created_at else "",
                    record.transfer_id,
                    record.direction.value,
                    record.kind.value,
                    record.status.value,
                    record.signed_amount,
                    record.currency,
                    record.balance_after,
                    record.description or "",
                ]
            )
            yield buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
        if buffer.tell():
            yield buffer.getvalue()

    return StreamingResponse(
        rows(),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="statement-{account_id}.csv"'
        },
    )
