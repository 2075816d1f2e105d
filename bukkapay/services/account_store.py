# bukkapay/services/account_store.py
"""
Balance storage. Every balance change is a single conditional UPDATE so that
concurrent writers are linearised by the database; nothing here reads a
balance, computes in Python and writes it back.

Nothing in this module commits: callers own the transaction.
"""
from decimal import Decimal
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.exceptions import AccountFrozen, AccountNotFound, InsufficientFunds
from bukkapay.core.money import ZERO, normalize_currency
from bukkapay.core.security import generate_card_number
from bukkapay.models.account import Account, AccountStatus


async def get_account(db: AsyncSession, account_id: str) -> Account:
    account = await db.get(Account, account_id, populate_existing=True)
    if account is None:
        raise AccountNotFound(f"Account {account_id} not found")
    return account


async def list_accounts(db: AsyncSession, owner_user_id: str) -> List[Account]:
    result = await db.execute(
        select(Account)
        .where(Account.owner_user_id == owner_user_id)
        .order_by(Account.is_default.desc(), Account.created_at, Account.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_default_account(db: AsyncSession, owner_user_id: str) -> Account | None:
    result = await db.execute(
        select(Account)
        .where(Account.owner_user_id == owner_user_id)
        .where(Account.is_default.is_(True))
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def create_account(
    db: AsyncSession,
    owner_user_id: str,
    currency: str,
    title: str = "Main",
    icon: str = "wallet",
    color: str = "blue",
    is_default: bool = False,
) -> Account:
    account = Account(
        owner_user_id=owner_user_id,
        title=title,
        icon=icon,
        color=color,
        currency=normalize_currency(currency),
        balance=ZERO,
        card_number=generate_card_number(),
        status=AccountStatus.active,
        is_default=is_default,
    )
    db.add(account)
    await db.flush()
    return account


async def set_status(
    db: AsyncSession, account_id: str, status: AccountStatus
) -> Account:
    account = await get_account(db, account_id)
    account.status = status
    await db.flush()
    return account


async def adjust_balance(
    db: AsyncSession,
    account_id: str,
    delta: Decimal,
    expected_min_balance: Decimal = ZERO,
    allow_frozen: bool = False,
) -> Decimal:
    """
    Atomically add ``delta`` to the balance and return the new balance.

    The row only changes when ``balance + delta >= expected_min_balance``
    (and the account is active, unless ``allow_frozen``). When nothing
    matched, the account is re-read to report why.
    """
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .where(Account.balance >= expected_min_balance - delta)
        .values(balance=Account.balance + delta)
        .returning(Account.balance)
        .execution_options(synchronize_session=False)
    )
    if not allow_frozen:
        stmt = stmt.where(Account.status == AccountStatus.active)

    result = await db.execute(stmt)
    new_balance = result.scalar_one_or_none()
    if new_balance is not None:
        return Decimal(str(new_balance))

    account = await get_account(db, account_id)
    if account.status == AccountStatus.frozen and not allow_frozen:
        raise AccountFrozen(f"Account {account_id} is frozen")
    raise InsufficientFunds(f"Insufficient funds in account {account_id}")
