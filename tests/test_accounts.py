import csv
import io
from decimal import Decimal

import pytest

pytestmark = pytest.mark.asyncio


async def test_register_creates_default_account(client, register):
    alice = await register("alice")

    r = await client.get("/accounts", headers=alice["headers"])
    assert r.status_code == 200
    accounts = r.json()
    assert len(accounts) == 1
    assert accounts[0]["isDefault"] is True
    assert accounts[0]["currency"] == "USD"
    assert Decimal(accounts[0]["balance"]) == Decimal("0")
    assert accounts[0]["ownerUserId"] == alice["user_id"]


async def test_create_account(client, register):
    alice = await register("alice")

    r = await client.post(
        "/accounts",
        json={"title": "Groceries", "currency": "eur", "icon": "cart", "color": "green"},
        headers=alice["headers"],
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["currency"] == "EUR"
    assert data["isDefault"] is False
    assert data["cardNumber"].startswith("**** ")
    assert data["status"] == "active"

    r = await client.post(
        "/accounts", json={"title": "Odd", "currency": "XXX"}, headers=alice["headers"]
    )
    assert r.status_code == 422


async def test_get_account_forbidden(client, register):
    alice = await register("alice")
    mallory = await register("mallory")

    r = await client.get(f"/accounts/{alice['account_id']}", headers=mallory["headers"])
    assert r.status_code == 403
    r = await client.get(f"/accounts/{alice['account_id']}/balance", headers=mallory["headers"])
    assert r.status_code == 403
    r = await client.get("/accounts/ACC-unknown", headers=mallory["headers"])
    assert r.status_code == 404


async def test_deposit_created_then_replayed(client, register):
    alice = await register("alice")
    url = f"/accounts/{alice['account_id']}/deposits"

    r = await client.post(
        url, json={"amount": "12.50", "idempotencyKey": "top-1"}, headers=alice["headers"]
    )
    assert r.status_code == 201, r.text
    assert r.json()["kind"] == "deposit"

    r = await client.post(
        url, json={"amount": "12.50", "idempotencyKey": "top-1"}, headers=alice["headers"]
    )
    assert r.status_code == 200
    assert r.json()["replayed"] is True

    r = await client.get(f"/accounts/{alice['account_id']}/balance", headers=alice["headers"])
    assert Decimal(r.json()["balance"]) == Decimal("12.50")


async def test_freeze_requires_superuser(client, register, make_superuser):
    admin = await register("admin")
    alice = await register("alice")
    url = f"/accounts/{alice['account_id']}/status?status=frozen"

    r = await client.patch(url, headers=alice["headers"])
    assert r.status_code == 403

    await make_superuser(admin["user_id"])
    r = await client.patch(url, headers=admin["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "frozen"

    r = await client.post(
        f"/accounts/{alice['account_id']}/deposits",
        json={"amount": "1.00", "idempotencyKey": "cold"},
        headers=alice["headers"],
    )
    assert r.status_code == 409
    assert r.json()["error"] == "account_frozen"


async def test_account_history_and_statement(client, register):
    alice = await register("alice")
    account_id = alice["account_id"]
    for n, amount in enumerate(["10.00", "20.00", "30.00"]):
        r = await client.post(
            f"/accounts/{account_id}/deposits",
            json={"amount": amount, "idempotencyKey": f"s{n}"},
            headers=alice["headers"],
        )
        assert r.status_code == 201

    r = await client.get(f"/accounts/{account_id}/transactions?limit=2", headers=alice["headers"])
    assert r.status_code == 200
    page = r.json()
    assert len(page["items"]) == 2
    assert page["nextCursor"] is not None

    r = await client.get(f"/accounts/{account_id}/statement", headers=alice["headers"])
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert [Decimal(row["balance_after"]) for row in rows] == [
        Decimal("60.00"),
        Decimal("30.00"),
        Decimal("10.00"),
    ]
    assert {row["kind"] for row in rows} == {"deposit"}
