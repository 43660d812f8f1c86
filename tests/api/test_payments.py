"""
Payment API tests

The Cashfree API is replaced with an httpx MockTransport.
"""
import json

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from mockmate.crud import payment_crud
from mockmate.models.payment import CreditTransaction, Payment, PaymentWebhook
from mockmate.models.user import User
from mockmate.services.payment_gateway import CashfreeGateway, sign_webhook
from mockmate.services.payment_service import payment_service
from tests.conftest import DataFactory

SECRET = "secret"


class FakeCashfree:
    """Records requests and answers like the Cashfree orders API"""

    def __init__(self, order_status: str = "PAID", fail: bool = False):
        self.order_status = order_status
        self.fail = fail
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"message": "upstream exploded"})
        if request.method == "POST" and request.url.path.endswith("/orders"):
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "order_id": body["order_id"],
                "cf_order_id": 98765,
                "payment_session_id": "session_abc",
                "order_status": "ACTIVE",
            })
        order_id = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={
            "order_id": order_id,
            "cf_order_id": 98765,
            "order_status": self.order_status,
            "order_amount": 499.0,
            "order_currency": "INR",
        })


def install_gateway(handler) -> CashfreeGateway:
    gateway = CashfreeGateway(
        app_id="app",
        secret_key=SECRET,
        base_url="https://sandbox.cashfree.com/pg",
        transport=httpx.MockTransport(handler),
    )
    payment_service.gateway = gateway
    return gateway


def signed_headers(body: str, timestamp: str = "1700000000") -> dict:
    return {
        "x-webhook-signature": sign_webhook(SECRET, timestamp, body),
        "x-webhook-timestamp": timestamp,
        "content-type": "application/json",
    }


def webhook_body(event_type: str, order_id: str, **payment) -> str:
    return json.dumps({
        "type": event_type,
        "data": {
            "order": {"order_id": order_id},
            "payment": {"cf_payment_id": 555, **payment},
        },
    })


@pytest.mark.asyncio
async def test_packages(client: AsyncClient):
    response = await client.get("/api/payments/packages")
    assert response.status_code == 200
    packages = {p["id"]: p for p in response.json()["data"]}
    assert packages["starter"]["total_credits"] == 10
    assert packages["starter"]["price_cents"] == 49900
    assert packages["professional"]["total_credits"] == 30
    assert packages["professional"]["price_cents"] == 89910
    assert packages["premium"]["total_credits"] == 75
    assert packages["premium"]["price_cents"] == 159920

    response = await client.get("/api/payments/plans")
    assert response.json()["data"]["gateway"] == "cashfree"


@pytest.mark.asyncio
async def test_create_order_without_gateway(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/payments/create-order", headers=user_headers, json={"package_id": "starter"})
    assert response.status_code == 503
    assert response.json()["code"] == "PAYMENT_GATEWAY_NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_create_order_unknown_package(client: AsyncClient, user_headers: dict):
    install_gateway(FakeCashfree())
    response = await client.post("/api/payments/create-order", headers=user_headers, json={"package_id": "gold"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PACKAGE"


@pytest.mark.asyncio
async def test_create_order_and_process_success(
    client: AsyncClient, factory: DataFactory, user: User, user_headers: dict
):
    fake = FakeCashfree(order_status="PAID")
    install_gateway(fake)

    # 1. Create the order
    response = await client.post(
        "/api/payments/create-order", headers=user_headers, json={"package_id": "professional"}
    )
    assert response.status_code == 201, response.text
    order = response.json()["data"]
    assert order["payment_session_id"] == "session_abc"
    assert order["payment_link"] == "https://sandbox.cashfree.com/links/session_abc"
    assert order["amount_cents"] == 89910
    assert order["credits"] == 30

    sent = json.loads(fake.requests[0].content)
    assert sent["order_amount"] == 899.1
    assert fake.requests[0].headers["x-client-id"] == "app"

    payment = await payment_crud.get_by_order_id(factory.db, order["order_id"])
    assert payment.status == "pending"

    # 2. Confirm
    response = await client.post(
        "/api/payments/process-success", headers=user_headers, json={"order_id": order["order_id"]}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["credits_added"] == 30
    assert data["total_credits"] == 35
    assert data["already_processed"] is False

    # 3. Confirming again grants nothing
    response = await client.post(
        "/api/payments/process-success", headers=user_headers, json={"order_id": order["order_id"]}
    )
    data = response.json()["data"]
    assert data["already_processed"] is True
    assert data["credits_added"] == 0
    assert (await factory.get(User, user.id)).credits == 35

    # 4. One purchase ledger entry
    result = await factory.db.execute(
        select(CreditTransaction).where(CreditTransaction.user_id == user.id)
    )
    entries = result.scalars().all()
    assert [(t.transaction_type, t.amount) for t in entries] == [("purchase", 30)]


@pytest.mark.asyncio
async def test_process_success_unpaid(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    install_gateway(FakeCashfree(order_status="ACTIVE"))
    payment = await factory.create_payment(user)

    response = await client.post(
        "/api/payments/process-success", headers=user_headers, json={"order_id": payment.order_id}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "PAYMENT_NOT_COMPLETED"
    assert (await factory.get(User, user.id)).credits == 5


@pytest.mark.asyncio
async def test_process_success_gateway_error(
    client: AsyncClient, factory: DataFactory, user: User, user_headers: dict
):
    install_gateway(FakeCashfree(fail=True))
    payment = await factory.create_payment(user)

    response = await client.post(
        "/api/payments/process-success", headers=user_headers, json={"order_id": payment.order_id}
    )
    assert response.status_code == 502
    assert response.json()["code"] == "PAYMENT_GATEWAY_ERROR"


@pytest.mark.asyncio
async def test_process_success_other_users_order(client: AsyncClient, factory: DataFactory, user_headers: dict):
    install_gateway(FakeCashfree())
    other = await factory.create_user()
    payment = await factory.create_payment(other)

    response = await client.post(
        "/api/payments/process-success", headers=user_headers, json={"order_id": payment.order_id}
    )
    assert response.status_code == 404
    assert response.json()["code"] == "PAYMENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_webhook_success_is_idempotent(client: AsyncClient, factory: DataFactory, user: User):
    install_gateway(FakeCashfree())
    payment = await factory.create_payment(user)
    body = webhook_body("PAYMENT_SUCCESS_WEBHOOK", payment.order_id)

    response = await client.post("/api/payments/webhook", content=body, headers=signed_headers(body))
    assert response.status_code == 200
    assert response.json()["data"]["processed"] is True
    assert response.json()["data"]["already_processed"] is False

    response = await client.post("/api/payments/webhook", content=body, headers=signed_headers(body))
    assert response.json()["data"]["already_processed"] is True

    stored = await factory.get(Payment, payment.id)
    assert stored.status == "completed"
    assert stored.provider_payment_id == "555"
    assert (await factory.get(User, user.id)).credits == 15


@pytest.mark.asyncio
async def test_webhook_invalid_signature_is_logged(client: AsyncClient, factory: DataFactory, user: User):
    install_gateway(FakeCashfree())
    payment = await factory.create_payment(user)
    body = webhook_body("PAYMENT_SUCCESS_WEBHOOK", payment.order_id)
    headers = signed_headers(body)
    headers["x-webhook-signature"] = "forged"

    response = await client.post("/api/payments/webhook", content=body, headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"

    result = await factory.db.execute(select(PaymentWebhook).where(PaymentWebhook.order_id == payment.order_id))
    record = result.scalar_one()
    assert record.signature_valid is False
    assert (await factory.get(Payment, payment.id)).status == "pending"


@pytest.mark.asyncio
async def test_webhook_with_undecodable_body_is_rejected_and_logged(client: AsyncClient, factory: DataFactory):
    install_gateway(FakeCashfree())
    body = b"\xff\xfe{}"
    headers = {"x-webhook-signature": "forged", "x-webhook-timestamp": "1700000000"}

    response = await client.post("/api/payments/webhook", content=body, headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"

    result = await factory.db.execute(select(PaymentWebhook).where(PaymentWebhook.event_type == "UNKNOWN"))
    record = result.scalar_one()
    assert record.signature_valid is False
    assert record.order_id is None


def test_signature_covers_raw_bytes():
    gateway = CashfreeGateway(app_id="app", secret_key=SECRET, base_url="https://sandbox.cashfree.com/pg")
    body = b"\xff\xfe{}"
    signature = sign_webhook(SECRET, "1700000000", body)

    assert gateway.verify_webhook_signature(body, signature, "1700000000") is True
    assert gateway.verify_webhook_signature(body + b" ", signature, "1700000000") is False
    assert gateway.verify_webhook_signature(body, "sïgnature", "1700000000") is False


@pytest.mark.asyncio
async def test_webhook_failed_payment(client: AsyncClient, factory: DataFactory, user: User):
    install_gateway(FakeCashfree())
    payment = await factory.create_payment(user)
    body = webhook_body("PAYMENT_FAILED_WEBHOOK", payment.order_id, payment_message="Card declined")

    response = await client.post("/api/payments/webhook", content=body, headers=signed_headers(body))
    assert response.status_code == 200

    stored = await factory.get(Payment, payment.id)
    assert stored.status == "failed"
    assert stored.failure_reason == "Card declined"


@pytest.mark.asyncio
async def test_webhook_unknown_order(client: AsyncClient):
    install_gateway(FakeCashfree())
    body = webhook_body("PAYMENT_SUCCESS_WEBHOOK", "MM_UNKNOWN")
    response = await client.post("/api/payments/webhook", content=body, headers=signed_headers(body))
    assert response.status_code == 200
    assert response.json()["data"]["processed"] is False


@pytest.mark.asyncio
async def test_history_and_get(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    payment = await factory.create_payment(user)
    await factory.create_payment(user, status="completed")
    await factory.create_payment(await factory.create_user())

    response = await client.get("/api/payments/history", headers=user_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert len(data["items"]) == 2

    response = await client.get(f"/api/payments/{payment.id}", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["data"]["order_id"] == payment.order_id


@pytest.mark.asyncio
async def test_admin_refund(client: AsyncClient, factory: DataFactory, admin_headers: dict):
    buyer = await factory.create_user(credits=4)
    payment = await factory.create_payment(buyer, status="completed")
    pending = await factory.create_payment(buyer)

    response = await client.post(f"/api/admin/payments/{pending.id}/refund", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "PAYMENT_NOT_REFUNDABLE"

    response = await client.post(
        f"/api/admin/payments/{payment.id}/refund", headers=admin_headers, json={"reason": "Duplicate charge"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "refunded"
    # Only the 4 remaining credits can be taken back
    assert data["credits_deducted"] == 4
    assert data["user_credits"] == 0
    assert (await factory.get(User, buyer.id)).credits == 0


@pytest.mark.asyncio
async def test_admin_payment_stats(client: AsyncClient, factory: DataFactory, user: User, admin_headers: dict):
    await factory.create_payment(user, status="completed")
    response = await client.get("/api/admin/payments/stats", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_revenue_cents"] == 49900
    assert data["credits_sold"] == 10
    assert data["gateway_configured"] is False
