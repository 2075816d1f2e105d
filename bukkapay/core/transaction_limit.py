from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from bukkapay.core.config import settings
from bukkapay.core.exceptions import TransferLimitExceeded
from bukkapay.models.transfer import (
    EntryDirection,
    TransactionLimit,
    TransferKind,
    TransferRecord,
    TransferStatus,
)

# Only money leaving the user's own wallet counts towards the limit.
LIMITED_KINDS = (TransferKind.p2p, TransferKind.external)


async def get_daily_spent(db: AsyncSession, user_id: str) -> Decimal:
    today_start = datetime.now(timezone.utc).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    result = await db.execute(
        select(func.coalesce(func.sum(TransferRecord.amount), 0))
        .where(TransferRecord.initiator_user_id == user_id)
        .where(TransferRecord.direction == EntryDirection.debit)
        .where(TransferRecord.kind.in_(LIMITED_KINDS))
        .where(TransferRecord.status != TransferStatus.failed)
        .where(TransferRecord.created_at >= today_start)
    )
    return Decimal(str(result.scalar() or 0))


async def get_daily_limit(db: AsyncSession, user_id: str) -> Decimal:
    row = await db.get(TransactionLimit, user_id)
    if row:
        return Decimal(str(row.daily_limit))
    return Decimal(settings.DAILY_TRANSFER_LIMIT)


async def check_transaction_limit(db: AsyncSession, user_id: str, amount: Decimal):
    limit = await get_daily_limit(db, user_id)
    spent = await get_daily_spent(db, user_id)
    if amount + spent > limit:
        raise TransferLimitExceeded(f"Daily transfer limit exceeded: {spent}/{limit}")
    return True


async def set_daily_limit(db: AsyncSession, user_id: str, daily_limit: Decimal):
    limit = await db.get(TransactionLimit, user_id)
    if not limit:
        limit = TransactionLimit(user_id=user_id, daily_limit=daily_limit)
        db.add(limit)
    else:
        limit.daily_limit = daily_limit
    await db.commit()
    await db.refresh(limit)
    return limit
