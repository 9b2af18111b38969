"""
认证：注册、登录、刷新令牌轮换、登出、改密
"""
from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from archplans.core.database import AsyncSessionLocal, engine
from archplans.core.exceptions import AuthenticationError
from archplans.models.user import User
from archplans.services.auth_service import (
    AuthService,
    create_access_token,
    hash_refresh_token,
    verify_access_token,
)

from conftest import DEFAULT_PASSWORD, run


def _register(client, email="new@example.com", password="Str0ngPass", name="Marie Curie"):
    return client.post("/api/auth/register", json={"email": email, "password": password, "name": name})


def test_register_returns_user_and_tokens(client):
    resp = _register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "CUSTOMER"
    assert body["tokens"]["token_type"] == "bearer"
    assert body["tokens"]["refresh_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['tokens']['access_token']}"})
    assert me.status_code == 200
    assert me.json()["profile"]["first_name"] == "Marie"


def test_register_duplicate_email_conflicts(client):
    assert _register(client).status_code == 201
    resp = _register(client, email="NEW@example.com")
    assert resp.status_code == 409


def test_register_rejects_weak_password(client):
    resp = _register(client, password="alllowercase1")
    assert resp.status_code == 422


def test_login_success_and_failures(client, factory):
    factory.user(email="buyer@example.com")
    factory.user(email="gone@example.com", is_active=False)

    ok = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": DEFAULT_PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["tokens"]["access_token"]

    wrong = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": "Wrong0ne!"})
    assert wrong.status_code == 401
    unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": DEFAULT_PASSWORD})
    assert unknown.status_code == 401
    inactive = client.post("/api/auth/login", json={"email": "gone@example.com", "password": DEFAULT_PASSWORD})
    assert inactive.status_code == 401


def test_refresh_rotates_and_old_token_is_rejected(client):
    tokens = _register(client).json()["tokens"]

    first = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200
    rotated = first.json()["tokens"]
    assert rotated["refresh_token"] != tokens["refresh_token"]

    replay = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401

    again = client.post("/api/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
    assert again.status_code == 200


def test_logout_revokes_refresh_token(client):
    tokens = _register(client).json()["tokens"]
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.post("/api/auth/logout", headers=headers).status_code == 204
    resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401


def test_verify_requires_valid_token(client, factory):
    user = factory.user()
    assert client.post("/api/auth/verify").status_code == 401
    assert client.post("/api/auth/verify", headers={"Authorization": "Bearer nonsense"}).status_code == 401

    expired = create_access_token(user, expires_delta=timedelta(minutes=-1))
    assert client.post("/api/auth/verify", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    resp = client.post("/api/auth/verify", headers=factory.headers(user))
    assert resp.status_code == 200
    assert resp.json()["id"] == user.id


def test_access_token_claims(factory):
    user = factory.admin()
    payload = verify_access_token(create_access_token(user))
    assert payload["user_id"] == user.id
    assert payload["role"] == "ADMIN"
    assert payload["type"] == "access"


def test_change_password_invalidates_refresh(client):
    tokens = _register(client).json()["tokens"]
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    bad = client.put("/api/auth/me/password", headers=headers,
                     json={"old_password": "nope", "new_password": "An0therPass"})
    assert bad.status_code == 401

    ok = client.put("/api/auth/me/password", headers=headers,
                    json={"old_password": "Str0ngPass", "new_password": "An0therPass"})
    assert ok.status_code == 204
    assert client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401
    login = client.post("/api/auth/login", json={"email": "new@example.com", "password": "An0therPass"})
    assert login.status_code == 200


def test_refresh_losing_rotation_race_is_unauthorized(client):
    tokens = _register(client).json()["tokens"]
    old_hash = hash_refresh_token(tokens["refresh_token"])
    winner_token = "rotated-by-another-request"

    class RacingSession(AsyncSession):
        """在条件 UPDATE 之前，由另一个会话抢先轮换刷新令牌"""

        async def execute(self, statement, *args, **kwargs):
            if getattr(statement, "is_update", False):
                async with AsyncSessionLocal() as other:
                    await other.execute(
                        update(User)
                        .where(User.refresh_token_hash == old_hash)
                        .values(refresh_token_hash=hash_refresh_token(winner_token))
                    )
                    await other.commit()
            return await super().execute(statement, *args, **kwargs)

    racing_factory = async_sessionmaker(engine, class_=RacingSession, expire_on_commit=False)

    async def _refresh():
        async with racing_factory() as db:
            with pytest.raises(AuthenticationError):
                await AuthService(db).refresh(tokens["refresh_token"])

    run(_refresh())
    ok = client.post("/api/auth/refresh", json={"refresh_token": winner_token})
    assert ok.status_code == 200
