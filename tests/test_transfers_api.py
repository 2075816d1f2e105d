from decimal import Decimal

import pytest

pytestmark = pytest.mark.asyncio


async def deposit(client, user, amount, key):
    r = await client.post(
        f"/accounts/{user['account_id']}/deposits",
        json={"amount": amount, "idempotencyKey": key},
        headers=user["headers"],
    )
    assert r.status_code in (200, 201), r.text
    return r.json()


async def test_transfer_created_then_replayed(client, register):
    alice = await register("alice")
    bob = await register("bob")
    await deposit(client, alice, "100.00", "seed")

    payload = {
        "sourceAccountId": alice["account_id"],
        "destination": {"type": "account", "id": bob["account_id"]},
        "amount": "40.00",
        "currency": "USD",
        "idempotencyKey": "key1",
    }
    r = await client.post("/transfers", json=payload, headers=alice["headers"])
    assert r.status_code == 201, r.text
    first = r.json()
    assert Decimal(first["sourceBalance"]) == Decimal("60.00")
    assert Decimal(first["destinationBalance"]) == Decimal("40.00")
    assert first["kind"] == "p2p"
    assert first["replayed"] is False

    r = await client.post("/transfers", json=payload, headers=alice["headers"])
    assert r.status_code == 200
    assert r.json()["transferId"] == first["transferId"]
    assert r.json()["replayed"] is True

    r = await client.get(f"/accounts/{bob['account_id']}/balance", headers=bob["headers"])
    assert Decimal(r.json()["balance"]) == Decimal("40.00")

    r = await client.get(f"/transfers/{first['transferId']}", headers=bob["headers"])
    assert r.status_code == 200
    assert len(r.json()["records"]) == 2


async def test_transfer_to_wallet_id(client, register):
    alice = await register("alice")
    bob = await register("bob")
    await deposit(client, alice, "20.00", "seed")

    r = await client.post(
        "/transfers",
        json={
            "sourceAccountId": alice["account_id"],
            "destination": {"type": "user", "id": bob["wallet_id"]},
            "amount": "5.00",
            "currency": "USD",
            "idempotencyKey": "to-bob",
        },
        headers=alice["headers"],
    )
    assert r.status_code == 201, r.text
    assert r.json()["destinationAccountId"] == bob["account_id"]


async def test_transfer_error_statuses(client, register):
    alice = await register("alice")
    bob = await register("bob")
    await deposit(client, alice, "10.00", "seed")

    def body(**overrides):
        payload = {
            "sourceAccountId": alice["account_id"],
            "destination": {"type": "account", "id": bob["account_id"]},
            "amount": "5.00",
            "currency": "USD",
            "idempotencyKey": "e1",
        }
        payload.update(overrides)
        return payload

    r = await client.post("/transfers", json=body(amount="50.00"), headers=alice["headers"])
    assert r.status_code == 409
    assert r.json()["error"] == "insufficient_funds"

    r = await client.post("/transfers", json=body(amount="0"), headers=alice["headers"])
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"

    r = await client.post("/transfers", json=body(currency="EUR"), headers=alice["headers"])
    assert r.status_code == 422
    assert r.json()["error"] == "currency_mismatch"

    r = await client.post(
        "/transfers",
        json=body(destination={"type": "account", "id": "ACC-missing"}),
        headers=alice["headers"],
    )
    assert r.status_code == 404
    assert r.json()["error"] == "account_not_found"

    r = await client.post("/transfers", json=body(), headers=bob["headers"])
    assert r.status_code == 403

    r = await client.post("/transfers", json=body())
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"

    r = await client.post("/transfers", json={"amount": "5.00"}, headers=alice["headers"])
    assert r.status_code == 422

    r = await client.post("/transfers", json=body(), headers=alice["headers"])
    assert r.status_code == 201
    r = await client.post("/transfers", json=body(amount="6.00"), headers=alice["headers"])
    assert r.status_code == 422
    assert r.json()["error"] == "idempotency_key_reused"


async def test_oversized_amounts_are_rejected(client, register, balance_of):
    alice = await register("alice")
    bob = await register("bob")
    await deposit(client, alice, "10.00", "seed")

    for amount in ("1e30", "10000000000000000"):
        r = await client.post(
            "/transfers",
            json={
                "sourceAccountId": alice["account_id"],
                "destination": {"type": "account", "id": bob["account_id"]},
                "amount": amount,
                "currency": "USD",
                "idempotencyKey": f"big-{amount}",
            },
            headers=alice["headers"],
        )
        assert r.status_code == 422, r.text
        assert r.json()["error"] == "validation_error"

    r = await client.post(
        f"/accounts/{alice['account_id']}/deposits",
        json={"amount": "1e30", "idempotencyKey": "big-deposit"},
        headers=alice["headers"],
    )
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"
    assert await balance_of(alice["account_id"]) == Decimal("10.00")


async def test_settle_requires_superuser(client, register, make_superuser):
    alice = await register("alice")
    await deposit(client, alice, "30.00", "seed")

    r = await client.post(
        "/transfers",
        json={
            "sourceAccountId": alice["account_id"],
            "destination": {"type": "external", "id": "IBAN-GB-42"},
            "amount": "30.00",
            "currency": "USD",
            "idempotencyKey": "payout",
        },
        headers=alice["headers"],
    )
    assert r.status_code == 201
    transfer_id = r.json()["transferId"]
    assert r.json()["status"] == "pending"

    r = await client.post(
        f"/transfers/{transfer_id}/settle", json={"success": False}, headers=alice["headers"]
    )
    assert r.status_code == 403

    await make_superuser(alice["user_id"])
    r = await client.post(
        f"/transfers/{transfer_id}/settle", json={"success": False}, headers=alice["headers"]
    )
    assert r.status_code == 200
    assert r.json()["status"] == "failed"

    r = await client.get(f"/accounts/{alice['account_id']}/balance", headers=alice["headers"])
    assert Decimal(r.json()["balance"]) == Decimal("30.00")


async def test_daily_limit_endpoint(client, register, make_superuser):
    admin = await register("admin")
    alice = await register("alice")
    await make_superuser(admin["user_id"])

    r = await client.post(
        f"/limits/{alice['user_id']}", json={"dailyLimit": "100"}, headers=admin["headers"]
    )
    assert r.status_code == 422

    r = await client.post(
        f"/limits/{alice['user_id']}", json={"dailyLimit": "50000"}, headers=admin["headers"]
    )
    assert r.status_code == 200
    assert Decimal(r.json()["dailyLimit"]) == Decimal("50000")

    r = await client.post(
        f"/limits/{alice['user_id']}", json={"dailyLimit": "50000"}, headers=alice["headers"]
    )
    assert r.status_code == 403


async def test_user_transaction_feed(client, register):
    alice = await register("alice")
    await deposit(client, alice, "10.00", "d1")
    await deposit(client, alice, "5.00", "d2")
    await deposit(client, alice, "1.00", "d3")

    r = await client.get("/transactions?limit=2", headers=alice["headers"])
    assert r.status_code == 200
    page = r.json()
    assert [Decimal(i["signedAmount"]) for i in page["items"]] == [Decimal("1.00"), Decimal("5.00")]
    assert page["nextCursor"]

    r = await client.get(
        f"/transactions?limit=2&cursor={page['nextCursor']}", headers=alice["headers"]
    )
    rest = r.json()
    assert [Decimal(i["amount"]) for i in rest["items"]] == [Decimal("10.00")]
    assert rest["nextCursor"] is None

    r = await client.get("/transactions?cursor=garbage", headers=alice["headers"])
    assert r.status_code == 422
