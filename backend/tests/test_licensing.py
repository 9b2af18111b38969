"""
授权访问判定、下载额度原子消耗、下载接口
"""
import re
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from archplans.core.database import AsyncSessionLocal
from archplans.core.exceptions import DownloadDeniedError
from archplans.models.download_log import DownloadLog
from archplans.models.enums import LicenseType
from archplans.models.license import License
from archplans.services import license_service
from archplans.services.download_service import build_download_filename

from conftest import run


def test_license_key_format():
    key = license_service.generate_license_key(LicenseType.COMMERCIAL, 42, 7)
    assert re.fullmatch(r"CO-42-7-[0-9A-Z]+-[0-9A-Z]{6}", key)
    assert key != license_service.generate_license_key(LicenseType.COMMERCIAL, 42, 7)


def test_tier_policy():
    tiers = license_service.LICENSE_TIERS
    assert tiers[LicenseType.STANDARD].max_downloads == 5
    assert tiers[LicenseType.COMMERCIAL].max_downloads == 10
    assert tiers[LicenseType.EXTENDED].max_downloads is None
    assert tiers[LicenseType.PREVIEW].expires_days == 7
    assert tiers[LicenseType.EXTENDED].resale_allowed


def test_access_requires_active_unexpired_license(factory):
    user = factory.user()
    plan = factory.plan()
    other = factory.plan()
    factory.license(user, plan=plan, download_count=2)
    factory.license(user, plan=other, expires_at=datetime.utcnow() - timedelta(days=1))

    async def _go():
        async with AsyncSessionLocal() as db:
            return (
                await license_service.get_user_plan_access(db, user.id, plan.id),
                await license_service.get_user_plan_access(db, user.id, other.id),
            )

    granted, expired = run(_go())
    assert granted == {"has_access": True, "license_type": LicenseType.STANDARD, "downloads_remaining": 3}
    assert expired == {"has_access": False}


def test_image_access_respects_minimum_tier(factory):
    user = factory.user()
    image = factory.image()
    factory.license(user, image=image, license_type=LicenseType.STANDARD)

    async def _go():
        async with AsyncSessionLocal() as db:
            return (
                await license_service.get_user_image_access(db, user.id, image.id, LicenseType.STANDARD),
                await license_service.get_user_image_access(db, user.id, image.id, LicenseType.COMMERCIAL),
            )

    standard, commercial = run(_go())
    assert standard["has_access"]
    assert not commercial["has_access"]


def test_consume_download_stops_at_limit(factory):
    user = factory.user()
    plan = factory.plan()
    lic = factory.license(user, plan=plan, max_downloads=2)

    async def _consume():
        async with AsyncSessionLocal() as db:
            updated = await license_service.consume_download(db, lic.id)
            await db.commit()
            return updated.download_count

    assert run(_consume()) == 1
    assert run(_consume()) == 2
    with pytest.raises(DownloadDeniedError):
        run(_consume())
    assert factory.get(License, lic.id).download_count == 2


def test_consume_download_rejects_inactive_license(factory):
    lic = factory.license(factory.user(), plan=factory.plan(), is_active=False)

    async def _consume():
        async with AsyncSessionLocal() as db:
            await license_service.consume_download(db, lic.id)

    with pytest.raises(DownloadDeniedError):
        run(_consume())


def test_plan_download_sixth_attempt_is_denied(client, factory):
    user = factory.user()
    plan = factory.plan()
    lic = factory.license(user, plan=plan, max_downloads=5)
    headers = factory.headers(user)

    for expected_remaining in (4, 3, 2, 1, 0):
        resp = client.get(f"/api/download/plans/{plan.id}", headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["downloads_remaining"] == expected_remaining
        assert body["files"][0]["url"] == "https://files.example.com/floor-plan.pdf"

    denied = client.get(f"/api/download/plans/{plan.id}", headers=headers)
    assert denied.status_code == 403
    assert factory.get(License, lic.id).download_count == 5


def test_plan_download_requires_login_and_license(client, factory):
    plan = factory.plan()
    assert client.get(f"/api/download/plans/{plan.id}").status_code == 401

    stranger = factory.user()
    assert client.get(f"/api/download/plans/{plan.id}", headers=factory.headers(stranger)).status_code == 403


def test_preview_download_is_anonymous_and_not_counted(client, factory):
    image = factory.image(title="Sunset Facade")
    resp = client.get(f"/api/download/{image.id}", params={"license": "PREVIEW"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["url"] == "https://img.example.com/facade.jpg"
    assert body["filename"].startswith("sunset_facade_preview_")
    assert body["downloads_remaining"] is None

    log = run(_first_download_log())
    assert log.license_type == LicenseType.PREVIEW
    assert log.user_id is None


async def _first_download_log():
    async with AsyncSessionLocal() as db:
        return await db.scalar(select(DownloadLog).order_by(DownloadLog.id))


def test_licensed_image_download(client, factory):
    user = factory.user()
    image = factory.image()
    factory.license(user, image=image, license_type=LicenseType.COMMERCIAL, max_downloads=10)
    headers = factory.headers(user)

    assert client.get(f"/api/download/{image.id}", params={"license": "STANDARD"}).status_code == 401
    ok = client.get(f"/api/download/{image.id}", params={"license": "STANDARD"}, headers=headers)
    assert ok.status_code == 200
    assert ok.json()["license_type"] == "COMMERCIAL"
    assert ok.json()["downloads_remaining"] == 9

    denied = client.get(f"/api/download/{image.id}", params={"license": "EXTENDED"}, headers=headers)
    assert denied.status_code == 403


def test_download_filename(factory):
    image = factory.image(title="Night View: Atrium")
    name = build_download_filename(image, LicenseType.EXTENDED, when=datetime(2025, 3, 9))
    assert name == "night_view_atrium_extended_2025-03-09.jpg"


def test_my_licenses_and_access_endpoint(client, factory):
    user = factory.user()
    plan = factory.plan(title="Barn Conversion")
    factory.license(user, plan=plan, download_count=1)
    headers = factory.headers(user)

    licenses = client.get("/api/licenses", headers=headers).json()
    assert licenses[0]["item_title"] == "Barn Conversion"
    assert licenses[0]["downloads_remaining"] == 4

    access = client.get(f"/api/plans/{plan.id}/access", headers=headers).json()
    assert access["has_access"] is True
