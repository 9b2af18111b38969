"""
订单状态机与后台订单、图库审核
"""
import pytest
from sqlalchemy.exc import OperationalError

from archplans.models.enums import ImageStatus, OrderStatus
from archplans.services import audit_service
from archplans.services.order_service import ALLOWED_TRANSITIONS, can_transition, generate_order_number


@pytest.mark.parametrize("current,target,allowed", [
    (OrderStatus.PENDING, OrderStatus.PROCESSING, True),
    (OrderStatus.PENDING, OrderStatus.COMPLETED, True),
    (OrderStatus.PENDING, OrderStatus.CANCELLED, True),
    (OrderStatus.PROCESSING, OrderStatus.COMPLETED, True),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED, True),
    (OrderStatus.PROCESSING, OrderStatus.PENDING, False),
    (OrderStatus.COMPLETED, OrderStatus.CANCELLED, True),
    (OrderStatus.COMPLETED, OrderStatus.PROCESSING, False),
    (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
    (OrderStatus.CANCELLED, OrderStatus.COMPLETED, False),
])
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_cancelled_is_terminal():
    assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


def test_order_number_format():
    number = generate_order_number()
    prefix, day, suffix = number.split("-")
    assert prefix == "PLS"
    assert len(day) == 8 and day.isdigit()
    assert len(suffix) == 8 and suffix == suffix.upper()
    assert generate_order_number() != number


def _paid_order(client, factory, user, plan):
    resp = client.post("/api/checkout", json={"items": [{"plan_id": plan.id}]}, headers=factory.headers(user))
    assert resp.status_code == 200
    return resp.json()["order_id"]


def test_admin_completes_and_refunds_order(client, factory, gateway):
    admin = factory.admin()
    user = factory.user()
    plan = factory.plan()
    order_id = _paid_order(client, factory, user, plan)

    done = client.patch(
        f"/api/admin/orders/{order_id}/status",
        json={"status": "COMPLETED", "internal_notes": "bank transfer received"},
        headers=factory.headers(admin),
    )
    assert done.status_code == 200
    body = done.json()
    assert body["status"] == "COMPLETED"
    assert body["payment_session_id"] == "cs_test_1"
    assert body["internal_notes"] == "bank transfer received"
    assert len(body["licenses"]) == 1

    again = client.patch(f"/api/admin/orders/{order_id}/status", json={"status": "COMPLETED"},
                         headers=factory.headers(admin))
    assert again.status_code == 409

    refunded = client.patch(f"/api/admin/orders/{order_id}/status", json={"status": "CANCELLED"},
                            headers=factory.headers(admin)).json()
    assert refunded["status"] == "CANCELLED"
    assert refunded["payment_status"] == "REFUNDED"
    assert refunded["licenses"] == []


def test_admin_invalid_transition_conflicts(client, factory, gateway):
    admin = factory.admin()
    order_id = _paid_order(client, factory, factory.user(), factory.plan())
    headers = factory.headers(admin)

    cancelled = client.patch(f"/api/admin/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=headers)
    assert cancelled.json()["payment_status"] == "FAILED"
    resp = client.patch(f"/api/admin/orders/{order_id}/status", json={"status": "PROCESSING"}, headers=headers)
    assert resp.status_code == 409


def test_admin_order_list_filters(client, factory, gateway):
    admin = factory.admin()
    headers = factory.headers(admin)
    alice = factory.user(email="alice@example.com", name="Alice Archer")
    bob = factory.user(email="bob@example.com", name="Bob Builder")
    plan = factory.plan()
    _paid_order(client, factory, alice, plan)
    bob_order = _paid_order(client, factory, bob, plan)
    client.patch(f"/api/admin/orders/{bob_order}/status", json={"status": "COMPLETED"}, headers=headers)

    everything = client.get("/api/admin/orders", headers=headers).json()
    assert everything["total"] == 2

    completed = client.get("/api/admin/orders", params={"status": "completed"}, headers=headers).json()
    assert [o["id"] for o in completed["items"]] == [bob_order]

    by_email = client.get("/api/admin/orders", params={"search": "alice@"}, headers=headers).json()
    assert by_email["total"] == 1
    assert by_email["items"][0]["billing_email"] == "alice@example.com"

    assert client.get("/api/admin/orders", params={"status": "SHIPPED"}, headers=headers).status_code == 400
    future = client.get("/api/admin/orders", params={"date_from": "2999-01-01"}, headers=headers).json()
    assert future["total"] == 0


def test_admin_order_detail_includes_internal_fields(client, factory, gateway):
    admin = factory.admin()
    order_id = _paid_order(client, factory, factory.user(), factory.plan())
    detail = client.get(f"/api/admin/orders/{order_id}", headers=factory.headers(admin)).json()
    assert detail["payment_session_id"] == "cs_test_1"
    assert detail["customer_ip"] == "testclient"
    assert len(detail["items"]) == 1
    assert client.get("/api/admin/orders/9999", headers=factory.headers(admin)).status_code == 404


def test_admin_actions_are_audited(client, factory, gateway):
    admin = factory.admin()
    order_id = _paid_order(client, factory, factory.user(), factory.plan())
    client.patch(f"/api/admin/orders/{order_id}/status", json={"status": "COMPLETED"}, headers=factory.headers(admin))

    logs = client.get("/api/admin/audit-logs", params={"action": "update_order_status"},
                      headers=factory.headers(admin)).json()
    assert logs["total"] == 1
    entry = logs["items"][0]
    assert entry["resource_id"] == str(order_id)
    assert entry["user_id"] == admin.id


def test_image_moderation_flow(client, factory):
    admin = factory.admin()
    headers = factory.headers(admin)
    created = client.post("/api/admin/images", json={
        "title": "Lakeside Render",
        "category": "LUXURY",
        "url": "https://img.example.com/lakeside.jpg",
    }, headers=headers)
    assert created.status_code == 201
    image = created.json()
    assert image["status"] == "PENDING"
    assert image["gallery_number"].startswith("GAL-")

    assert client.get("/api/gallery/images").json()["total_count"] == 0
    pending = client.get("/api/admin/images", params={"status": "PENDING"}, headers=headers).json()
    assert [i["id"] for i in pending["items"]] == [image["id"]]

    approved = client.patch(f"/api/admin/images/{image['id']}", json={"status": "APPROVED"}, headers=headers)
    assert approved.json()["status"] == ImageStatus.APPROVED.value
    public = client.get("/api/gallery/images", params={"category": "LUXURY"}).json()
    assert public["total_count"] == 1
    assert public["has_more"] is False

    assert client.delete(f"/api/admin/images/{image['id']}", headers=headers).status_code == 204
    assert client.get("/api/gallery/images").json()["total_count"] == 0
    assert client.patch(f"/api/admin/images/{image['id']}", json={"title": "x"}, headers=headers).status_code == 404


def test_upload_rejects_unknown_extension(client, factory):
    admin = factory.admin()
    resp = client.post(
        "/api/admin/upload",
        files={"file": ("notes.exe", b"MZ", "application/octet-stream")},
        data={"title": "Bad", "category": "RESIDENTIAL"},
        headers=factory.headers(admin),
    )
    assert resp.status_code == 400


def test_customer_cannot_moderate(client, factory):
    user = factory.user()
    resp = client.post("/api/admin/images", json={
        "title": "Mine", "category": "RESIDENTIAL", "url": "https://img.example.com/m.jpg",
    }, headers=factory.headers(user))
    assert resp.status_code == 403


class _FailingAuditSession:
    """审计表不可写的会话"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def add(self, entry):
        pass

    async def commit(self):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    async def rollback(self):
        pass


def test_audit_failure_does_not_break_admin_write(client, factory, monkeypatch):
    monkeypatch.setattr(audit_service, "AsyncSessionLocal", _FailingAuditSession)
    headers = factory.headers(factory.admin())
    created = client.post("/api/admin/images", json={
        "title": "Harbour Render",
        "category": "COMMERCIAL",
        "url": "https://img.example.com/harbour.jpg",
    }, headers=headers)
    assert created.status_code == 201
    image = created.json()
    assert image["title"] == "Harbour Render"
    assert image["gallery_number"].startswith("GAL-")

    updated = client.patch(f"/api/admin/images/{image['id']}", json={"status": "APPROVED"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "APPROVED"

    monkeypatch.undo()
    logs = client.get("/api/admin/audit-logs", headers=headers).json()
    assert logs["total"] == 0
