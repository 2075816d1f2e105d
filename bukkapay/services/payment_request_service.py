# bukkapay/services/payment_request_service.py
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.config import settings
from bukkapay.core.exceptions import (
    AccountNotFound,
    AuthorizationError,
    Conflict,
    NotFound,
)
from bukkapay.core.money import normalize_currency, parse_amount
from bukkapay.models.payment_request import PaymentRequest, PaymentRequestStatus
from bukkapay.services import account_store, ledger

logger = logging.getLogger(__name__)


async def create_request(
    db: AsyncSession,
    requester_user_id: str,
    amount,
    currency: str,
    recipient_name: Optional[str] = None,
    recipient_phone: Optional[str] = None,
    note: Optional[str] = None,
) -> PaymentRequest:
    currency = normalize_currency(currency)
    amount = parse_amount(amount, currency)
    now = datetime.now(timezone.utc)
    request = PaymentRequest(
        requester_user_id=requester_user_id,
        amount=amount,
        currency=currency,
        recipient_name=recipient_name,
        recipient_phone=recipient_phone,
        note=note,
        status=PaymentRequestStatus.pending,
        created_at=now,
        expires_at=now + timedelta(hours=settings.PAYMENT_REQUEST_TTL_HOURS),
    )
    db.add(request)
    await db.commit()
    await db.refresh(request)
    logger.info("Payment request %s created by %s", request.id, requester_user_id)
    return request


async def expire_stale(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Mark pending requests past their expiry as expired."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        update(PaymentRequest)
        .where(PaymentRequest.status == PaymentRequestStatus.pending)
        .where(PaymentRequest.expires_at <= now)
        .values(status=PaymentRequestStatus.expired)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.info("Expired %s payment requests", result.rowcount)
    return result.rowcount or 0


async def get_request(db: AsyncSession, request_id: str) -> PaymentRequest:
    await expire_stale(db)
    request = await db.get(PaymentRequest, request_id, populate_existing=True)
    if request is None:
        raise NotFound(f"Payment request {request_id} not found")
    return request


async def list_requests(db: AsyncSession, requester_user_id: str) -> List[PaymentRequest]:
    await expire_stale(db)
    result = await db.execute(
        select(PaymentRequest)
        .where(PaymentRequest.requester_user_id == requester_user_id)
        .order_by(PaymentRequest.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def pay_request(
    db: AsyncSession,
    caller_id: str,
    request_id: str,
    source_account_id: str,
    idempotency_key: str,
) -> ledger.TransferResult:
    """
    Pay a request from one of the caller's accounts into the requester's
    default account. The status change commits with the transfer, so a
    request is paid at most once.
    """
    request = await get_request(db, request_id)
    requester_id = request.requester_user_id
    amount = request.amount
    currency = request.currency

    if requester_id == caller_id:
        raise Conflict("You cannot pay your own payment request")
    already_ours = (
        request.status == PaymentRequestStatus.paid
        and request.paid_by_user_id == caller_id
    )
    if request.status != PaymentRequestStatus.pending and not already_ours:
        raise Conflict(f"Payment request {request_id} is {request.status.value}")

    target = await account_store.get_default_account(db, requester_id)
    if target is None:
        raise AccountNotFound("Requester has no default account")

    async def mark_paid(result: ledger.TransferResult) -> None:
        now = datetime.now(timezone.utc)
        updated = await db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request_id)
            .where(PaymentRequest.status == PaymentRequestStatus.pending)
            .where(PaymentRequest.expires_at > now)
            .values(
                status=PaymentRequestStatus.paid,
                transfer_id=result.transfer_id,
                paid_by_user_id=caller_id,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise Conflict(f"Payment request {request_id} is no longer payable")

    result = await ledger.transfer(
        db,
        caller_id,
        source_account_id,
        ledger.Destination(ledger.DestinationType.account, target.id),
        amount,
        currency,
        idempotency_key,
        description=f"Payment request {request_id}",
        before_commit=mark_paid,
    )

    request = await db.get(PaymentRequest, request_id, populate_existing=True)
    if request.transfer_id != result.transfer_id:
        raise Conflict(f"Payment request {request_id} is no longer payable")
    logger.info("Payment request %s paid by %s via %s", request_id, caller_id, result.transfer_id)
    return result


async def cancel_request(db: AsyncSession, caller_id: str, request_id: str) -> PaymentRequest:
    request = await get_request(db, request_id)
    if request.requester_user_id != caller_id:
        raise AuthorizationError("Forbidden")
    current = request.status
    updated = await db.execute(
        update(PaymentRequest)
        .where(PaymentRequest.id == request_id)
        .where(PaymentRequest.status == PaymentRequestStatus.pending)
        .values(status=PaymentRequestStatus.cancelled)
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        await db.rollback()
        raise Conflict(f"Payment request {request_id} is {current.value}")
    await db.commit()
    return await db.get(PaymentRequest, request_id, populate_existing=True)
