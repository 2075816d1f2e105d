from typing import List
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from bukkapay.db.db import get_db
from bukkapay.core.rate_limiter import rate_limit_dependency
from bukkapay.core.sessions import get_current_user
from bukkapay.schemas.payment_request import (
    PaymentRequestCreate,
    PaymentRequestOut,
    PayRequestIn,
)
from bukkapay.schemas.transfer import TransferOut
from bukkapay.services import payment_request_service

router = APIRouter(prefix="/payment-requests", tags=["payment-requests"])


async def rate_limit_dep(request: Request, user=Depends(get_current_user)):
    return await rate_limit_dependency(request, user_id=user["sub"], limit=60, period=60)


@router.post("", response_model=PaymentRequestOut, status_code=status.HTTP_201_CREATED)
async def create_payment_request(
    payload: PaymentRequestCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await payment_request_service.create_request(
        db,
        user["sub"],
        payload.amount,
        payload.currency,
        recipient_name=payload.recipient_name,
        recipient_phone=payload.recipient_phone,
        note=payload.note,
    )


@router.get("", response_model=List[PaymentRequestOut])
async def list_payment_requests(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await payment_request_service.list_requests(db, user["sub"])


@router.get("/{request_id}", response_model=PaymentRequestOut)
async def get_payment_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    # Anyone holding the link may view a request in order to pay it.
    return await payment_request_service.get_request(db, request_id)


@router.post(
    "/{request_id}/pay",
    response_model=TransferOut,
    dependencies=[Depends(rate_limit_dep)],
)
async def pay_payment_request(
    request_id: str,
    payload: PayRequestIn,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await payment_request_service.pay_request(
        db,
        user["sub"],
        request_id,
        payload.source_account_id,
        payload.idempotency_key,
    )
    return TransferOut.model_validate(result)


@router.post("/{request_id}/cancel", response_model=PaymentRequestOut)
async def cancel_payment_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    return await payment_request_service.cancel_request(db, user["sub"], request_id)
