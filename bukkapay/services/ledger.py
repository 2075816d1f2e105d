# bukkapay/services/ledger.py
"""
Ledger transfer service: the single writer path for account balances.

A transfer is one database transaction that applies both balance changes
with conditional updates, appends the debit and credit legs to the
transaction log, and commits. Either everything is visible afterwards or
nothing is.

Every money movement carries a caller supplied idempotency key. The log has
a unique constraint on (initiator, key, direction), so a replay is detected
by the database even when two identical requests race each other; the loser
rolls back and returns the winner's result.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bukkapay.core.events import publish_event
from bukkapay.core.exceptions import (
    AccountFrozen,
    AccountNotFound,
    AuthorizationError,
    CurrencyMismatch,
    IdempotencyKeyReused,
    LedgerError,
    NotFound,
    StorageFailure,
    ValidationError,
)
from bukkapay.core.money import normalize_currency, parse_amount
from bukkapay.core.queue import publish_settlement_message
from bukkapay.core.transaction_limit import LIMITED_KINDS, check_transaction_limit
from bukkapay.models.account import Account, AccountStatus
from bukkapay.models.transfer import (
    EntryDirection,
    TransferKind,
    TransferRecord,
    TransferStatus,
)
from bukkapay.models.user import User
from bukkapay.services import account_store, transaction_log

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 128


class DestinationType(str, enum.Enum):
    account = "account"
    user = "user"
    external = "external"


@dataclass
class Destination:
    type: DestinationType
    id: str


@dataclass
class TransferResult:
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
    records: List[TransferRecord] = field(default_factory=list, repr=False)

    @classmethod
    def from_records(
        cls, records: List[TransferRecord], replayed: bool = False
    ) -> "TransferResult":
        primary = [r for r in records if r.kind != TransferKind.refund]
        debit = next((r for r in primary if r.direction == EntryDirection.debit), None)
        credit = next((r for r in primary if r.direction == EntryDirection.credit), None)
        head = debit or credit
        return cls(
            transfer_id=head.transfer_id,
            kind=head.kind,
            status=head.status,
            amount=head.amount,
            currency=head.currency,
            source_account_id=head.source_account_id,
            destination_account_id=head.destination_account_id,
            external_reference=head.external_reference,
            source_balance=debit.balance_after if debit else None,
            destination_balance=credit.balance_after if credit else None,
            idempotency_key=head.idempotency_key,
            description=head.description,
            created_at=head.created_at,
            replayed=replayed,
            records=list(records),
        )


def _check_key(idempotency_key: str) -> str:
    key = (idempotency_key or "").strip()
    if not key:
        raise ValidationError("idempotencyKey is required")
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(
            f"idempotencyKey must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        )
    return key


async def _find_user(db: AsyncSession, handle: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(or_(User.wallet_id == handle, User.username == handle))
    )
    return result.scalars().first()


async def _resolve_destination(
    db: AsyncSession, destination: Destination
) -> Optional[Account]:
    """Internal account to credit, or None for an external recipient."""
    if destination.type == DestinationType.external:
        if not destination.id.strip():
            raise ValidationError("External recipient reference is required")
        return None

    if destination.type == DestinationType.account:
        return await account_store.get_account(db, destination.id)

    user = await _find_user(db, destination.id)
    if user is None or not user.is_active:
        raise NotFound(f"User {destination.id} not found")
    account = await account_store.get_default_account(db, user.id)
    if account is None:
        raise AccountNotFound(f"User {destination.id} has no default account")
    return account


async def _replay(
    db: AsyncSession, caller_id: str, key: str
) -> Optional[TransferResult]:
    records = await transaction_log.find_by_idempotency_key(db, caller_id, key)
    if not records:
        return None
    return TransferResult.from_records(records, replayed=True)


async def _same_transfer(
    db: AsyncSession,
    previous: TransferResult,
    source_account_id: str,
    destination: Destination,
    amount: Decimal,
    currency: str,
) -> bool:
    if (
        previous.kind == TransferKind.deposit
        or previous.source_account_id != source_account_id
        or previous.amount != amount
        or previous.currency != currency
    ):
        return False
    if destination.type == DestinationType.external:
        return (
            previous.destination_account_id is None
            and previous.external_reference == destination.id
        )
    if previous.destination_account_id is None:
        return False
    if destination.type == DestinationType.account:
        return previous.destination_account_id == destination.id

    user = await _find_user(db, destination.id)
    credited = await db.get(Account, previous.destination_account_id)
    return user is not None and credited is not None and credited.owner_user_id == user.id


async def _run_unit(
    db: AsyncSession,
    caller_id: str,
    key: str,
    work: Callable[[], Awaitable[TransferResult]],
    matches: Callable[[TransferResult], Awaitable[bool]],
) -> TransferResult:
    """
    Run ``work`` and commit, or roll back completely.

    A unique violation on the idempotency constraint means a concurrent
    request with the same key committed first; its result is returned.
    """
    try:
        result = await work()
        await db.commit()
        return result
    except IntegrityError as e:
        await db.rollback()
        previous = await _replay(db, caller_id, key)
        if previous is None:
            logger.exception("Integrity error without a committed twin for key %s", key)
            raise StorageFailure(
                "Transfer could not be completed, retry with the same idempotency key"
            ) from e
        if not await matches(previous):
            raise IdempotencyKeyReused(
                f"Idempotency key {key} was already used for a different request"
            )
        logger.info("Concurrent replay of key %s resolved to %s", key, previous.transfer_id)
        return previous
    except LedgerError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Storage failure during transfer with key %s", key)
        raise StorageFailure(
            "Transfer could not be completed, retry with the same idempotency key"
        ) from e


async def transfer(
    db: AsyncSession,
    caller_id: str,
    source_account_id: str,
    destination: Destination,
    amount,
    currency: str,
    idempotency_key: str,
    description: Optional[str] = None,
    before_commit: Optional[Callable[[TransferResult], Awaitable[None]]] = None,
) -> TransferResult:
    """
    Move ``amount`` from the caller's account to ``destination``.

    ``before_commit`` runs inside the atomic unit once both legs are
    written; raising from it rolls the whole transfer back. It is not
    called when the request is a replay.
    """
    currency = normalize_currency(currency)
    amount = parse_amount(amount, currency)
    key = _check_key(idempotency_key)

    async def matches(previous: TransferResult) -> bool:
        return await _same_transfer(
            db, previous, source_account_id, destination, amount, currency
        )

    previous = await _replay(db, caller_id, key)
    if previous is not None:
        if not await matches(previous):
            raise IdempotencyKeyReused(
                f"Idempotency key {key} was already used for a different request"
            )
        logger.info("Replayed transfer %s for key %s", previous.transfer_id, key)
        return previous

    source = await account_store.get_account(db, source_account_id)
    if source.owner_user_id != caller_id:
        raise AuthorizationError("Source account belongs to another user")
    if source.status == AccountStatus.frozen:
        raise AccountFrozen(f"Account {source.id} is frozen")
    if source.currency != currency:
        raise CurrencyMismatch(
            f"Account {source.id} holds {source.currency}, not {currency}"
        )

    target = await _resolve_destination(db, destination)
    if target is None:
        kind = TransferKind.external
        external_reference = destination.id.strip()
    else:
        if target.id == source.id:
            raise ValidationError("Source and destination must differ")
        if target.status == AccountStatus.frozen:
            raise AccountFrozen(f"Account {target.id} is frozen")
        if target.currency != currency:
            raise CurrencyMismatch(
                f"Account {target.id} holds {target.currency}, not {currency}"
            )
        kind = TransferKind.own if target.owner_user_id == caller_id else TransferKind.p2p
        external_reference = None

    if kind in LIMITED_KINDS:
        await check_transaction_limit(db, caller_id, amount)

    source_id = source.id
    target_id = target.id if target is not None else None
    transfer_id = str(uuid.uuid4())

    async def work() -> TransferResult:
        legs = [(source_id, -amount)]
        if target_id is not None:
            legs.append((target_id, amount))
        # Fixed lock order: two transfers in opposite directions cannot deadlock.
        balances = {}
        for account_id, delta in sorted(legs):
            balances[account_id] = await account_store.adjust_balance(db, account_id, delta)

        common = dict(
            transfer_id=transfer_id,
            kind=kind,
            source_account_id=source_id,
            destination_account_id=target_id,
            external_reference=external_reference,
            amount=amount,
            currency=currency,
            initiator_user_id=caller_id,
            idempotency_key=key,
            description=description,
        )
        records = [
            await transaction_log.append(
                db,
                TransferRecord(
                    account_id=source_id,
                    direction=EntryDirection.debit,
                    balance_after=balances[source_id],
                    status=(
                        TransferStatus.pending
                        if target_id is None
                        else TransferStatus.completed
                    ),
                    **common,
                ),
            )
        ]
        if target_id is not None:
            records.append(
                await transaction_log.append(
                    db,
                    TransferRecord(
                        account_id=target_id,
                        direction=EntryDirection.credit,
                        balance_after=balances[target_id],
                        status=TransferStatus.completed,
                        **common,
                    ),
                )
            )
        result = TransferResult.from_records(records)
        if before_commit is not None:
            await before_commit(result)
        return result

    result = await _run_unit(db, caller_id, key, work, matches)
    if result.replayed:
        return result

    logger.info(
        "Transfer %s committed: %s -> %s %s %s (%s)",
        result.transfer_id,
        source_id,
        target_id or external_reference,
        amount,
        currency,
        kind.value,
    )
    await _announce(result)
    return result


async def deposit(
    db: AsyncSession,
    caller_id: str,
    account_id: str,
    amount,
    idempotency_key: str,
    description: Optional[str] = None,
    is_superuser: bool = False,
) -> TransferResult:
    """Credit an account from outside the wallet (top-up)."""
    key = _check_key(idempotency_key)

    account = await account_store.get_account(db, account_id)
    if account.owner_user_id != caller_id and not is_superuser:
        raise AuthorizationError("Forbidden")
    currency = account.currency
    amount = parse_amount(amount, currency)

    async def matches(previous: TransferResult) -> bool:
        return (
            previous.kind == TransferKind.deposit
            and previous.destination_account_id == account_id
            and previous.amount == amount
        )

    previous = await _replay(db, caller_id, key)
    if previous is not None:
        if not await matches(previous):
            raise IdempotencyKeyReused(
                f"Idempotency key {key} was already used for a different request"
            )
        return previous

    if account.status == AccountStatus.frozen:
        raise AccountFrozen(f"Account {account_id} is frozen")

    transfer_id = str(uuid.uuid4())

    async def work() -> TransferResult:
        balance = await account_store.adjust_balance(db, account_id, amount)
        record = await transaction_log.append(
            db,
            TransferRecord(
                transfer_id=transfer_id,
                account_id=account_id,
                direction=EntryDirection.credit,
                kind=TransferKind.deposit,
                source_account_id=None,
                destination_account_id=account_id,
                amount=amount,
                currency=currency,
                balance_after=balance,
                status=TransferStatus.completed,
                initiator_user_id=caller_id,
                idempotency_key=key,
                description=description or "Top up",
            ),
        )
        return TransferResult.from_records([record])

    result = await _run_unit(db, caller_id, key, work, matches)
    if not result.replayed:
        logger.info("Deposit %s committed: %s %s to %s", transfer_id, amount, currency, account_id)
        await _announce(result)
    return result


async def settle_external(
    db: AsyncSession, transfer_id: str, success: bool
) -> TransferResult:
    """
    Confirm or fail a pending external transfer. A failure puts the money
    back on the source account with a refund leg, even if that account has
    been frozen since. Settling twice changes nothing.
    """
    records = await transaction_log.list_for_transfer(db, transfer_id)
    debit = next((r for r in records if r.direction == EntryDirection.debit), None)
    if debit is None:
        raise NotFound(f"Transfer {transfer_id} not found")
    if debit.kind != TransferKind.external:
        raise ValidationError("Only external transfers are settled")
    if debit.status != TransferStatus.pending:
        return TransferResult.from_records(records)

    debit_id = debit.id
    snapshot = dict(
        account_id=debit.account_id,
        amount=debit.amount,
        currency=debit.currency,
        external_reference=debit.external_reference,
        initiator_user_id=debit.initiator_user_id,
        idempotency_key=debit.idempotency_key,
    )
    new_status = TransferStatus.completed if success else TransferStatus.failed

    try:
        updated = await db.execute(
            update(TransferRecord)
            .where(TransferRecord.id == debit_id)
            .where(TransferRecord.status == TransferStatus.pending)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 1 and not success:
            balance = await account_store.adjust_balance(
                db, snapshot["account_id"], snapshot["amount"], allow_frozen=True
            )
            await transaction_log.append(
                db,
                TransferRecord(
                    transfer_id=transfer_id,
                    account_id=snapshot["account_id"],
                    direction=EntryDirection.credit,
                    kind=TransferKind.refund,
                    source_account_id=None,
                    destination_account_id=snapshot["account_id"],
                    external_reference=snapshot["external_reference"],
                    amount=snapshot["amount"],
                    currency=snapshot["currency"],
                    balance_after=balance,
                    status=TransferStatus.completed,
                    initiator_user_id=snapshot["initiator_user_id"],
                    idempotency_key=snapshot["idempotency_key"],
                    description="Refund of failed external transfer",
                ),
            )
        await db.commit()
    except IntegrityError:
        # the refund leg already exists: settled concurrently
        await db.rollback()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Storage failure while settling %s", transfer_id)
        raise StorageFailure("Settlement could not be recorded, retry later") from e

    result = TransferResult.from_records(
        await transaction_log.list_for_transfer(db, transfer_id)
    )
    logger.info("Transfer %s settled: %s", transfer_id, result.status.value)
    await publish_event(
        "transfer.settled",
        {"transfer_id": transfer_id, "status": result.status.value},
    )
    return result


async def get_transfer(
    db: AsyncSession, caller_id: str, transfer_id: str, is_superuser: bool = False
) -> TransferResult:
    records = await transaction_log.list_for_transfer(db, transfer_id)
    if not records:
        raise NotFound(f"Transfer {transfer_id} not found")
    if not is_superuser:
        account_ids = {r.account_id for r in records}
        owners = await db.execute(
            select(Account.owner_user_id).where(Account.id.in_(account_ids))
        )
        if caller_id not in set(owners.scalars().all()):
            raise AuthorizationError("Forbidden")
    return TransferResult.from_records(records)


async def _announce(result: TransferResult) -> None:
    payload = {
        "transfer_id": result.transfer_id,
        "kind": result.kind.value,
        "status": result.status.value,
        "source_account_id": result.source_account_id,
        "destination_account_id": result.destination_account_id,
        "amount": str(result.amount),
        "currency": result.currency,
    }
    if result.kind != TransferKind.external:
        await publish_event("transfer.completed", payload)
        return

    await publish_event("transfer.settlement_requested", payload)
    try:
        await publish_settlement_message(
            {
                "transfer_id": result.transfer_id,
                "external_reference": result.external_reference,
                "amount": str(result.amount),
                "currency": result.currency,
            }
        )
    except Exception:
        # stays pending; an operator can settle it by hand
        logger.exception("Failed to request settlement for %s", result.transfer_id)
