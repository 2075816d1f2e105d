from decimal import Decimal

import pytest

from bukkapay.seed import seed
from bukkapay.services import account_store

pytestmark = pytest.mark.asyncio


async def test_seed_builds_demo_wallet_once(async_session):
    user = await seed(async_session)
    again = await seed(async_session)
    assert again.id == user.id

    cards = {c.title: c for c in await account_store.list_accounts(async_session, user.id)}
    assert set(cards) == {"Main", "Fuel", "Groceries", "Transport", "Leisure"}
    assert cards["Main"].is_default
    assert Decimal(str(cards["Fuel"].balance)) == Decimal("1205.50")
    assert Decimal(str(cards["Groceries"].balance)) == Decimal("495.75")
