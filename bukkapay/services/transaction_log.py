# bukkapay/services/transaction_log.py
"""
Append-only history of balance movements.

Pages are ordered newest first by record id. A cursor is an opaque token
for the last id of the previous page, so a listing can be resumed at any
point and never skips or repeats rows that were appended meanwhile.
"""
import base64
import binascii
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.exceptions import ValidationError
from bukkapay.models.account import Account
from bukkapay.models.transfer import TransferRecord

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class Page:
    items: List[TransferRecord]
    next_cursor: Optional[str]


def encode_cursor(record_id: int) -> str:
    raw = f"r:{record_id}".encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> int:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        prefix, _, value = base64.urlsafe_b64decode(padded).decode().partition(":")
        if prefix != "r":
            raise ValueError(cursor)
        return int(value)
    except (ValueError, binascii.Error, UnicodeDecodeError):
        raise ValidationError("Invalid cursor")


def _clamp(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    return min(limit, MAX_LIMIT)


async def append(db: AsyncSession, record: TransferRecord) -> TransferRecord:
    """Must run inside the same transaction as the balance change it records."""
    db.add(record)
    await db.flush()
    return record


async def _page(db: AsyncSession, stmt, limit: Optional[int], cursor: Optional[str]) -> Page:
    limit = _clamp(limit)
    if cursor:
        stmt = stmt.where(TransferRecord.id < decode_cursor(cursor))
    result = await db.execute(stmt.order_by(TransferRecord.id.desc()).limit(limit + 1))
    rows = list(result.scalars().all())
    items = rows[:limit]
    next_cursor = encode_cursor(items[-1].id) if len(rows) > limit else None
    return Page(items=items, next_cursor=next_cursor)


async def list_for_account(
    db: AsyncSession,
    account_id: str,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
) -> Page:
    stmt = select(TransferRecord).where(TransferRecord.account_id == account_id)
    return await _page(db, stmt, limit, cursor)


async def list_for_user(
    db: AsyncSession,
    user_id: str,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
) -> Page:
    owned = select(Account.id).where(Account.owner_user_id == user_id)
    stmt = select(TransferRecord).where(TransferRecord.account_id.in_(owned))
    return await _page(db, stmt, limit, cursor)


async def iter_for_account(
    db: AsyncSession,
    account_id: str,
    page_size: int = MAX_LIMIT,
    cursor: Optional[str] = None,
) -> AsyncIterator[TransferRecord]:
    while True:
        page = await list_for_account(db, account_id, page_size, cursor)
        for record in page.items:
            yield record
        if page.next_cursor is None:
            return
        cursor = page.next_cursor


async def list_for_transfer(db: AsyncSession, transfer_id: str) -> List[TransferRecord]:
    result = await db.execute(
        select(TransferRecord)
        .where(TransferRecord.transfer_id == transfer_id)
        .order_by(TransferRecord.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def find_by_idempotency_key(
    db: AsyncSession, initiator_user_id: str, idempotency_key: str
) -> List[TransferRecord]:
    result = await db.execute(
        select(TransferRecord)
        .where(TransferRecord.initiator_user_id == initiator_user_id)
        .where(TransferRecord.idempotency_key == idempotency_key)
        .order_by(TransferRecord.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
