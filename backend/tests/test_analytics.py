"""
后台统计、数据完整性检查、编号状态、健康检查
"""
from datetime import datetime
from decimal import Decimal

import pytest

from archplans.core.database import AsyncSessionLocal
from archplans.services.analytics_service import change_type, get_analytics, percentage_change
from archplans.services.integrity_service import check_data_integrity

from conftest import run


@pytest.mark.parametrize("current,previous,expected", [
    (10, 5, 100),
    (5, 10, -50),
    (7, 7, 0),
    (3, 0, 100),
    (0, 0, 0),
    (1, 3, -67),
])
def test_percentage_change(current, previous, expected):
    assert percentage_change(current, previous) == expected


def test_change_type():
    assert change_type(12) == "positive"
    assert change_type(-1) == "negative"
    assert change_type(0) == "neutral"


def _analytics(now=None):
    async def _go():
        async with AsyncSessionLocal() as db:
            return await get_analytics(db, now)

    return run(_go())


def _integrity():
    async def _go():
        async with AsyncSessionLocal() as db:
            return await check_data_integrity(db)

    return run(_go())


def test_analytics_counts_downloads(client, factory):
    user = factory.user()
    plan = factory.plan()
    factory.image()
    factory.license(user, plan=plan)
    for _ in range(2):
        assert client.get(f"/api/download/plans/{plan.id}", headers=factory.headers(user)).status_code == 200

    data = _analytics()
    assert data["total_users"] == 1
    assert data["total_plans"] == 1
    assert data["total_images"] == 1
    assert data["total_downloads"] == 2
    assert data["downloads_today"]["current"] == 2
    assert data["downloads_today"]["previous"] == 0
    assert data["downloads_today"]["change_type"] == "positive"
    assert data["downloads_by_license"]["STANDARD"] == 2
    assert data["images_by_status"] == {"PENDING": 0, "APPROVED": 1, "REJECTED": 0}
    assert len(data["downloads_last_7_days"]) == 7
    assert data["downloads_last_7_days"][-1] == {"date": datetime.utcnow().strftime("%Y-%m-%d"), "count": 2}
    assert data["recent_downloads"][0]["item_title"] == plan.title


def test_analytics_endpoint(client, factory):
    admin = factory.admin()
    resp = client.get("/api/admin/analytics", headers=factory.headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_users"] == 1
    assert body["total_revenue"] == 0
    assert body["downloads_this_month"] == {"current": 0, "previous": 0, "change": 0, "change_type": "neutral"}


def test_integrity_report_is_healthy_on_clean_data(client, factory):
    user = factory.user()
    factory.license(user, plan=factory.plan())
    report = _integrity()
    assert report["is_healthy"] is True
    assert report["over_consumed_licenses"] == []


def test_integrity_detects_problems(client, factory):
    user = factory.user()
    plan = factory.plan()
    bad_price = factory.plan(base_price=Decimal("0"))
    lic = factory.license(user, plan=plan, max_downloads=2, download_count=3)

    report = _integrity()
    assert report["is_healthy"] is False
    assert report["over_consumed_licenses"] == [lic.id]
    assert report["invalid_plan_pricing"] == [bad_price.id]

    admin = factory.admin()
    body = client.get("/api/admin/integrity", headers=factory.headers(admin)).json()
    assert body["is_healthy"] is False
    assert body["over_consumed_licenses"] == [lic.id]


def test_sequences_endpoint(client, factory):
    factory.plan()
    factory.plan()
    admin = factory.admin()
    year = datetime.now().year
    body = client.get("/api/admin/sequences", headers=factory.headers(admin)).json()
    assert body == {
        "year": year,
        "plan_sequence": 3,
        "visualization_sequence": 1,
        "project_sequence": 1,
        "gallery_sequence": 1,
    }
    past = client.get("/api/admin/sequences", params={"year": 2001}, headers=factory.headers(admin)).json()
    assert past["plan_sequence"] == 1


def test_root_and_health(client, monkeypatch):
    monkeypatch.setattr("archplans.main.check_redis", lambda: (True, "ok"))
    monkeypatch.setattr("archplans.main.check_minio", lambda: (False, "unreachable"))
    assert client.get("/").json()["docs"] == "/docs"
    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["dependencies"]["database"]["ok"] is True
    assert body["dependencies"]["minio"] == {"ok": False, "message": "unreachable"}
