"""
目录查询：列表筛选、详情与浏览计数、搜索、分类、后台维护
"""
from decimal import Decimal

from archplans.models.enums import PlanStatus
from archplans.models.plan import Plan


def test_list_only_published_active_plans(client, factory):
    visible = factory.plan(title="Lake House")
    factory.plan(title="Draft House", status=PlanStatus.DRAFT)
    factory.plan(title="Hidden House", is_active=False)

    resp = client.get("/api/plans")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert [p["id"] for p in body["items"]] == [visible.id]
    assert body["items"][0]["primary_image_url"] == "https://img.example.com/villa.jpg"


def test_list_filters_sort_and_paginate(client, factory):
    cheap = factory.plan(base_price=Decimal("100.00"), bedrooms=2, style="TRADITIONAL")
    mid = factory.plan(base_price=Decimal("300.00"), bedrooms=3)
    pricey = factory.plan(base_price=Decimal("900.00"), bedrooms=5)

    resp = client.get("/api/plans", params={"sort_by": "price_asc"}).json()
    assert [p["id"] for p in resp["items"]] == [cheap.id, mid.id, pricey.id]

    resp = client.get("/api/plans", params={"min_price": 200, "max_price": 950, "bedrooms": 3}).json()
    assert {p["id"] for p in resp["items"]} == {mid.id, pricey.id}

    resp = client.get("/api/plans", params={"style": "traditional"}).json()
    assert [p["id"] for p in resp["items"]] == [cheap.id]

    page = client.get("/api/plans", params={"limit": 2, "page": 2, "sort_by": "price_desc"}).json()
    assert page["total"] == 3
    assert page["pages"] == 2
    assert [p["id"] for p in page["items"]] == [cheap.id]
    assert page["has_prev"] and not page["has_next"]


def test_detail_by_slug_or_number_counts_views(client, factory):
    plan = factory.plan(slug="courtyard-home")

    first = client.get("/api/plans/courtyard-home")
    assert first.status_code == 200
    assert first.json()["files"][0]["filename"] == "floor-plan.pdf"
    assert "url" not in first.json()["files"][0]

    client.get(f"/api/plans/{plan.plan_number}")
    client.get(f"/api/plans/{plan.id}")
    assert factory.get(Plan, plan.id).view_count == 3


def test_detail_of_draft_is_not_found(client, factory):
    draft = factory.plan(status=PlanStatus.DRAFT)
    assert client.get(f"/api/plans/{draft.slug}").status_code == 404
    assert client.get("/api/plans/no-such-plan").status_code == 404


def test_search_matches_tags_and_title(client, factory):
    tagged = factory.plan(title="Compact Cabin", tags=("timber",))
    factory.plan(title="Glass Tower")

    assert [p["id"] for p in client.get("/api/plans/search", params={"q": "timber"}).json()] == [tagged.id]
    assert [p["id"] for p in client.get("/api/plans/search", params={"q": "cabin"}).json()] == [tagged.id]


def test_categories_report_plan_counts(client, factory):
    villas = factory.category(name="Villas", slug="villas")
    factory.plan(category_id=villas.id)
    factory.plan(category_id=villas.id, status=PlanStatus.DRAFT)

    resp = client.get("/api/categories").json()
    assert resp[0]["slug"] == "villas"
    assert resp[0]["plan_count"] == 1

    listed = client.get("/api/plans", params={"category": "villas"}).json()
    assert listed["total"] == 1


def test_admin_creates_and_publishes_plan(client, factory):
    admin = factory.admin()
    headers = factory.headers(admin)
    payload = {
        "title": "Hillside Retreat",
        "slug": "hillside-retreat",
        "description": "Split level home",
        "square_footage": 1800,
        "base_price": 350,
        "single_license_price": 600,
        "commercial_license_price": 1200,
        "unlimited_license_price": 2400,
        "tags": ["Slope", "slope", "Views"],
        "files": [{"filename": "plan.pdf", "file_format": "pdf", "url": "https://files.example.com/plan.pdf"}],
    }
    created = client.post("/api/admin/plans", json=payload, headers=headers)
    assert created.status_code == 201
    plan = created.json()
    assert plan["status"] == "DRAFT"
    assert plan["plan_number"].startswith("PA-")
    assert sorted(plan["tags"]) == ["slope", "views"]

    assert client.get("/api/plans/hillside-retreat").status_code == 404
    published = client.post(f"/api/admin/plans/{plan['id']}/publish", headers=headers)
    assert published.json()["status"] == "PUBLISHED"
    assert client.get("/api/plans/hillside-retreat").status_code == 200

    dup = client.post("/api/admin/plans", json=payload, headers=headers)
    assert dup.status_code == 409

    assert client.delete(f"/api/admin/plans/{plan['id']}", headers=headers).status_code == 204
    assert client.get("/api/plans/hillside-retreat").status_code == 404


def test_admin_plan_rejects_unlisted_file_format(client, factory):
    headers = factory.headers(factory.admin())
    payload = {
        "title": "Cabin Kit",
        "slug": "cabin-kit",
        "description": "Small cabin",
        "square_footage": 600,
        "base_price": 99,
        "single_license_price": 199,
        "commercial_license_price": 399,
        "unlimited_license_price": 799,
        "files": [{"filename": "setup.exe", "file_format": "exe", "url": "https://files.example.com/setup.exe"}],
    }
    assert client.post("/api/admin/plans", json=payload, headers=headers).status_code == 422

    payload["files"] = [{"filename": "site.DWG", "file_format": ".DWG", "url": "https://files.example.com/site.dwg"}]
    created = client.post("/api/admin/plans", json=payload, headers=headers)
    assert created.status_code == 201
    assert created.json()["files"][0]["file_format"] == "dwg"


def test_projects_and_visualizations(client, factory):
    headers = factory.headers(factory.admin())
    project = client.post("/api/admin/projects", headers=headers, json={
        "title": "Harbour Offices",
        "slug": "harbour-offices",
        "description": "Mixed use waterfront scheme",
        "project_type": "COMMERCIAL",
    })
    assert project.status_code == 201
    project_id = project.json()["id"]
    assert project.json()["project_number"].startswith("PRJ-")

    vis = client.post("/api/admin/visualizations", headers=headers, json={
        "title": "Harbour at dusk",
        "slug": "harbour-at-dusk",
        "description": "Exterior render",
        "category": "exterior",
        "render_type": "still",
        "project_id": project_id,
    })
    assert vis.status_code == 201
    assert vis.json()["category"] == "EXTERIOR"

    detail = client.get("/api/projects/harbour-offices").json()
    assert [v["slug"] for v in detail["visualizations"]] == ["harbour-at-dusk"]

    assert client.delete(f"/api/admin/projects/{project_id}", headers=headers).status_code == 204
    assert client.get("/api/projects/harbour-offices").status_code == 404
