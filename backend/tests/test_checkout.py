"""
结算：免费订单、托管支付会话、支付服务故障、支付回调幂等、争议退款
"""
import json

from sqlalchemy import func, select

from archplans.core.database import AsyncSessionLocal
from archplans.models.enums import LicenseType, OrderStatus, PlanStatus
from archplans.models.license import License
from archplans.models.order import Order
from archplans.services.order_service import OrderService

from conftest import run


def _checkout(client, headers, items, **extra):
    return client.post("/api/checkout", json={"items": items, **extra}, headers=headers)


def _webhook(client, event, signature="valid"):
    return client.post(
        "/api/webhooks/stripe",
        content=json.dumps(event),
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


def _license_count(order_id):
    async def _go():
        async with AsyncSessionLocal() as db:
            return await db.scalar(select(func.count()).select_from(License).where(License.order_id == order_id))

    return run(_go())


def _session_completed(order_id, session_id="cs_test_1", payment_intent="pi_123"):
    return {
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id,
            "payment_status": "paid",
            "payment_intent": payment_intent,
            "metadata": {"order_id": str(order_id)},
        }},
    }


def test_free_checkout_completes_immediately(client, factory, gateway):
    user = factory.user()
    plan = factory.plan()
    resp = _checkout(client, factory.headers(user), [{"plan_id": plan.id, "license_type": "PREVIEW"}])
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_free"] is True
    assert body["amount"] == 0
    assert body["session_id"] is None
    assert gateway.calls == []

    order = client.get(f"/api/orders/{body['order_id']}", headers=factory.headers(user)).json()
    assert order["status"] == "COMPLETED"
    assert order["payment_status"] == "PAID"
    assert order["order_number"].startswith("PLS-")
    assert len(order["licenses"]) == 1
    assert order["licenses"][0]["license_type"] == "PREVIEW"
    assert order["licenses"][0]["expires_at"] is not None


def test_paid_checkout_creates_payment_session(client, factory, gateway):
    user = factory.user(email="payer@example.com")
    plan = factory.plan(title="Coastal Home")
    image = factory.image()
    resp = _checkout(
        client, factory.headers(user),
        [{"plan_id": plan.id, "license_type": "STANDARD"}, {"image_id": image.id, "license_type": "COMMERCIAL"}],
        billing={"name": "Pat Payer", "country": "fr"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_free"] is False
    assert body["session_id"] == "cs_test_1"
    assert body["session_url"] == "https://checkout.test/cs_test_1"
    assert body["amount"] == 898.99
    assert body["currency"] == "USD"

    call = gateway.calls[0]
    assert [li.unit_amount for li in call["line_items"]] == [79900, 9999]
    assert call["metadata"]["order_id"] == str(body["order_id"])
    assert call["customer_email"] == "payer@example.com"
    assert "{CHECKOUT_SESSION_ID}" in call["success_url"]

    order = client.get(f"/api/orders/{body['order_id']}", headers=factory.headers(user)).json()
    assert order["status"] == "PROCESSING"
    assert order["billing_country"] == "FR"
    assert [i["unit_price"] for i in order["items"]] == [799.0, 99.99]
    assert order["licenses"] == []


def test_provider_failure_cancels_order(client, factory, gateway):
    user = factory.user()
    plan = factory.plan()
    gateway.fail = True
    resp = _checkout(client, factory.headers(user), [{"plan_id": plan.id}])
    assert resp.status_code == 502

    orders = client.get("/api/orders", headers=factory.headers(user)).json()
    assert orders["total"] == 1
    assert orders["items"][0]["status"] == "CANCELLED"
    assert orders["items"][0]["payment_status"] == "FAILED"


def test_checkout_validation(client, factory):
    user = factory.user()
    headers = factory.headers(user)
    plan = factory.plan()
    draft = factory.plan(status=PlanStatus.DRAFT)

    assert client.post("/api/checkout", json={"items": []}, headers=headers).status_code == 422
    assert _checkout(client, headers, [{"plan_id": plan.id, "image_id": 1}]).status_code == 422
    assert _checkout(client, headers, [{"plan_id": draft.id}]).status_code == 404
    dup = _checkout(client, headers, [{"plan_id": plan.id}, {"plan_id": plan.id, "license_type": "COMMERCIAL"}])
    assert dup.status_code == 400
    assert client.post("/api/checkout", json={"items": [{"plan_id": plan.id}]}).status_code == 401


def test_already_owned_license_conflicts(client, factory):
    user = factory.user()
    plan = factory.plan()
    factory.license(user, plan=plan, license_type=LicenseType.STANDARD)
    headers = factory.headers(user)

    assert _checkout(client, headers, [{"plan_id": plan.id, "license_type": "STANDARD"}]).status_code == 409
    upgrade = _checkout(client, headers, [{"plan_id": plan.id, "license_type": "COMMERCIAL"}])
    assert upgrade.status_code == 200


def test_webhook_completes_order_once(client, factory, gateway):
    user = factory.user()
    plan = factory.plan()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": plan.id}]).json()["order_id"]

    assert _webhook(client, _session_completed(order_id)).status_code == 200
    assert _webhook(client, _session_completed(order_id)).status_code == 200
    assert _license_count(order_id) == 1

    order = client.get(f"/api/orders/{order_id}", headers=factory.headers(user)).json()
    assert order["status"] == "COMPLETED"
    assert order["payment_status"] == "PAID"
    lic = order["licenses"][0]
    assert lic["license_type"] == "STANDARD"
    assert lic["max_downloads"] == 5
    assert lic["license_key"].startswith(f"ST-{order_id}-")

    download = client.get(f"/api/download/plans/{plan.id}", headers=factory.headers(user))
    assert download.status_code == 200


def test_replayed_completion_event_is_skipped(client, factory, gateway):
    user = factory.user()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": factory.plan().id}]).json()["order_id"]
    event = _session_completed(order_id)

    async def _handle():
        async with AsyncSessionLocal() as db:
            service = OrderService(db)
            first, first_completed = await service.handle_payment_event(event)
            replay, replay_completed = await service.handle_payment_event(event)
            return first_completed, replay_completed, replay.id, replay.status, len(replay.licenses)

    first_completed, replay_completed, replay_id, replay_status, license_count = run(_handle())
    assert first_completed is True
    assert replay_completed is False
    assert replay_id == order_id
    assert replay_status == OrderStatus.COMPLETED
    assert license_count == 1


def test_webhook_rejects_bad_signature(client, factory, gateway):
    user = factory.user()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": factory.plan().id}]).json()["order_id"]
    assert _webhook(client, _session_completed(order_id), signature="forged").status_code == 400
    assert _license_count(order_id) == 0


def test_payment_failed_event_cancels(client, factory, gateway):
    user = factory.user()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": factory.plan().id}]).json()["order_id"]
    event = {
        "type": "payment_intent.payment_failed",
        "data": {"object": {"id": "pi_failed", "metadata": {"order_id": str(order_id)}}},
    }
    assert _webhook(client, event).status_code == 200
    order = client.get(f"/api/orders/{order_id}", headers=factory.headers(user)).json()
    assert order["status"] == "CANCELLED"
    assert order["payment_status"] == "FAILED"


def test_dispute_refunds_and_deactivates_licenses(client, factory, gateway):
    user = factory.user()
    plan = factory.plan()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": plan.id}]).json()["order_id"]
    _webhook(client, _session_completed(order_id, payment_intent="pi_disputed"))

    dispute = {
        "type": "charge.dispute.created",
        "data": {"object": {"id": "dp_1", "payment_intent": "pi_disputed", "reason": "fraudulent"}},
    }
    assert _webhook(client, dispute).status_code == 200

    order = client.get(f"/api/orders/{order_id}", headers=factory.headers(user)).json()
    assert order["status"] == "CANCELLED"
    assert order["payment_status"] == "REFUNDED"
    assert order["licenses"] == []
    assert client.get(f"/api/download/plans/{plan.id}", headers=factory.headers(user)).status_code == 403


def test_unknown_event_is_acknowledged(client, gateway):
    assert _webhook(client, {"type": "customer.created", "data": {"object": {}}}).json() == {"received": True}


def test_orders_are_private(client, factory, gateway):
    owner = factory.user()
    other = factory.user()
    order_id = _checkout(client, factory.headers(owner), [{"plan_id": factory.plan().id}]).json()["order_id"]

    assert client.get(f"/api/orders/{order_id}", headers=factory.headers(other)).status_code == 404
    assert client.get("/api/orders", headers=factory.headers(other)).json()["total"] == 0


def test_order_totals_use_captured_prices(client, factory, gateway):
    user = factory.user()
    plan = factory.plan()
    order_id = _checkout(client, factory.headers(user), [{"plan_id": plan.id, "license_type": "EXTENDED"}]).json()["order_id"]

    async def _total():
        async with AsyncSessionLocal() as db:
            return (await db.get(Order, order_id)).total_amount

    assert float(run(_total())) == 2999.0
