from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from bukkapay.db.db import get_db
from bukkapay.core.deps import require_superuser
from bukkapay.core.logger import logging
from bukkapay.core.rate_limiter import rate_limit_dependency
from bukkapay.core.sessions import get_current_user
from bukkapay.core.transaction_limit import set_daily_limit
from bukkapay.schemas.transfer import (
    DailyLimitIn,
    SettleIn,
    TransferCreate,
    TransferDetailOut,
    TransferOut,
)
from bukkapay.services import ledger

logger = logging.getLogger(__name__)
router = APIRouter(tags=["transfers"])


async def rate_limit_dep(request: Request, user=Depends(get_current_user)):
    return await rate_limit_dependency(request, user_id=user["sub"], limit=60, period=60)


@router.post(
    "/transfers",
    response_model=TransferOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_dep)],
)
async def create_transfer(
    payload: TransferCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await ledger.transfer(
        db,
        user["sub"],
        payload.source_account_id,
        ledger.Destination(payload.destination.type, payload.destination.id),
        payload.amount,
        payload.currency,
        payload.idempotency_key,
        description=payload.description,
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return TransferOut.model_validate(result)


@router.get("/transfers/{transfer_id}", response_model=TransferDetailOut)
async def get_transfer(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await ledger.get_transfer(
        db, user["sub"], transfer_id, is_superuser=user["is_superuser"]
    )
    return TransferDetailOut.model_validate(result)


@router.post("/transfers/{transfer_id}/settle", response_model=TransferOut)
async def settle_transfer(
    transfer_id: str,
    payload: SettleIn,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_superuser),
):
    result = await ledger.settle_external(db, transfer_id, payload.success)
    logger.info("Transfer %s settled manually by %s", transfer_id, user["sub"])
    return TransferOut.model_validate(result)


@router.post("/limits/{user_id}", dependencies=[Depends(require_superuser)])
async def update_daily_limit(
    user_id: str,
    payload: DailyLimitIn = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Set a user's daily outgoing transfer limit. Must be >= 20,000.
    """
    limit = await set_daily_limit(db, user_id, payload.daily_limit)
    logger.info("Daily transfer limit set for %s: %s", user_id, limit.daily_limit)
    return {"userId": user_id, "dailyLimit": str(Decimal(str(limit.daily_limit)))}
