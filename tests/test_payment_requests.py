import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from bukkapay.core.exceptions import Conflict
from bukkapay.models.payment_request import PaymentRequest, PaymentRequestStatus
from bukkapay.services import payment_request_service

pytestmark = pytest.mark.asyncio


async def test_request_is_paid_once(client, register, balance_of):
    alice = await register("alice")
    bob = await register("bob")
    await client.post(
        f"/accounts/{bob['account_id']}/deposits",
        json={"amount": "50.00", "idempotencyKey": "seed"},
        headers=bob["headers"],
    )

    r = await client.post(
        "/payment-requests",
        json={"amount": "20.00", "currency": "USD", "note": "Dinner"},
        headers=alice["headers"],
    )
    assert r.status_code == 201, r.text
    request_id = r.json()["id"]
    assert r.json()["status"] == "pending"

    r = await client.get(f"/payment-requests/{request_id}", headers=bob["headers"])
    assert r.status_code == 200

    pay = {"sourceAccountId": bob["account_id"], "idempotencyKey": "pay-1"}
    r = await client.post(f"/payment-requests/{request_id}/pay", json=pay, headers=bob["headers"])
    assert r.status_code == 200, r.text
    transfer_id = r.json()["transferId"]
    assert r.json()["destinationAccountId"] == alice["account_id"]

    r = await client.post(f"/payment-requests/{request_id}/pay", json=pay, headers=bob["headers"])
    assert r.status_code == 200
    assert r.json()["transferId"] == transfer_id
    assert r.json()["replayed"] is True

    r = await client.post(
        f"/payment-requests/{request_id}/pay",
        json={"sourceAccountId": bob["account_id"], "idempotencyKey": "pay-2"},
        headers=bob["headers"],
    )
    assert r.status_code == 409

    assert await balance_of(bob["account_id"]) == Decimal("30.00")
    assert await balance_of(alice["account_id"]) == Decimal("20.00")

    r = await client.get("/payment-requests", headers=alice["headers"])
    [paid] = r.json()
    assert paid["status"] == "paid"
    assert paid["transferId"] == transfer_id
    assert paid["paidByUserId"] == bob["user_id"]


async def test_own_request_cannot_be_paid(client, register):
    alice = await register("alice")
    r = await client.post(
        "/payment-requests", json={"amount": "5.00", "currency": "USD"}, headers=alice["headers"]
    )
    request_id = r.json()["id"]

    r = await client.post(
        f"/payment-requests/{request_id}/pay",
        json={"sourceAccountId": alice["account_id"], "idempotencyKey": "self"},
        headers=alice["headers"],
    )
    assert r.status_code == 409


async def test_expired_request_cannot_be_paid(client, register, session_factory, balance_of):
    alice = await register("alice")
    bob = await register("bob")
    await client.post(
        f"/accounts/{bob['account_id']}/deposits",
        json={"amount": "50.00", "idempotencyKey": "seed"},
        headers=bob["headers"],
    )
    r = await client.post(
        "/payment-requests", json={"amount": "5.00", "currency": "USD"}, headers=alice["headers"]
    )
    request_id = r.json()["id"]

    async with session_factory() as db:
        await db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request_id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        await db.commit()

    r = await client.post(
        f"/payment-requests/{request_id}/pay",
        json={"sourceAccountId": bob["account_id"], "idempotencyKey": "late"},
        headers=bob["headers"],
    )
    assert r.status_code == 409
    assert await balance_of(bob["account_id"]) == Decimal("50.00")

    r = await client.get(f"/payment-requests/{request_id}", headers=alice["headers"])
    assert r.json()["status"] == "expired"


async def test_cancel(client, register):
    alice = await register("alice")
    bob = await register("bob")
    r = await client.post(
        "/payment-requests", json={"amount": "5.00", "currency": "USD"}, headers=alice["headers"]
    )
    request_id = r.json()["id"]

    r = await client.post(f"/payment-requests/{request_id}/cancel", headers=bob["headers"])
    assert r.status_code == 403

    r = await client.post(f"/payment-requests/{request_id}/cancel", headers=alice["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    r = await client.post(f"/payment-requests/{request_id}/cancel", headers=alice["headers"])
    assert r.status_code == 409

    r = await client.post(
        f"/payment-requests/{request_id}/pay",
        json={"sourceAccountId": bob["account_id"], "idempotencyKey": "too-late"},
        headers=bob["headers"],
    )
    assert r.status_code == 409


async def test_concurrent_payers_pay_once(
    async_session, session_factory, make_user, fund, balance_of
):
    alice, a = await make_user("alice")
    bob, b = await make_user("bob")
    carol, c = await make_user("carol")
    await fund(bob, b, "10.00")
    await fund(carol, c, "10.00")
    request = await payment_request_service.create_request(async_session, alice, "10.00", "USD")

    async def pay(caller, source):
        async with session_factory() as db:
            return await payment_request_service.pay_request(
                db, caller, request.id, source, "pay"
            )

    outcomes = await asyncio.gather(pay(bob, b), pay(carol, c), return_exceptions=True)

    paid = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(paid) == 1
    assert all(isinstance(o, Conflict) for o in outcomes if isinstance(o, Exception))
    assert await balance_of(a) == Decimal("10.00")
    assert await balance_of(b) + await balance_of(c) == Decimal("10.00")

    stored = await payment_request_service.get_request(async_session, request.id)
    assert stored.status == PaymentRequestStatus.paid
    assert stored.transfer_id == paid[0].transfer_id
