"""
Demo data: one user with four funded cards and a little history.

    python -m bukkapay.seed
"""
import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select

from bukkapay.core.logger import configure_logging
from bukkapay.db.db import AsyncSessionLocal, Base, engine
from bukkapay.models.user import User
from bukkapay.services import account_store, ledger
from bukkapay.services.user_service import create_user
import bukkapay.models  # noqa: F401

logger = logging.getLogger(__name__)

DEMO_EMAIL = "alex.morgan@example.com"

DEMO_CARDS = [
    ("Fuel", "fuel", "blue", Decimal("1250.50")),
    ("Groceries", "shopping-cart", "green", Decimal("450.75")),
    ("Transport", "bus", "purple", Decimal("85.20")),
    ("Leisure", "coffee", "orange", Decimal("320.00")),
]


async def seed(db) -> User:
    existing = await db.execute(select(User).where(User.email == DEMO_EMAIL))
    user = existing.scalars().first()
    if user is not None:
        logger.info("Demo user already present: %s", user.wallet_id)
        return user

    user = await create_user(
        db,
        name="Alex Morgan",
        email=DEMO_EMAIL,
        username="alex_morgan",
        password="demo1234",
    )
    for title, icon, color, opening in DEMO_CARDS:
        card = await account_store.create_account(
            db, user.id, "USD", title=title, icon=icon, color=color
        )
        card_id = card.id
        await db.commit()
        await ledger.deposit(
            db, user.id, card_id, opening, f"seed-{title.lower()}", "Opening balance"
        )

    cards = await account_store.list_accounts(db, user.id)
    fuel = next(c for c in cards if c.title == "Fuel")
    groceries = next(c for c in cards if c.title == "Groceries")
    await ledger.transfer(
        db,
        user.id,
        fuel.id,
        ledger.Destination(ledger.DestinationType.account, groceries.id),
        Decimal("45.00"),
        "USD",
        "seed-transfer-1",
        description="Move to groceries",
    )
    logger.info("Seeded demo user %s (%s)", user.username, user.wallet_id)
    return user


async def main():
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        await seed(db)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
