"""
测试公共夹具：临时 SQLite 库、TestClient、数据工厂、假支付网关
"""
import asyncio
import json
import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="archplans-tests-"))

# 必须在导入 archplans 之前设置
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["AUDIT_LOG_ENABLED"] = "true"
os.environ["LOG_FILE"] = str(_TMP_DIR / "app.log")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"

import pytest
from fastapi.testclient import TestClient

import archplans.models  # noqa: F401
from archplans.core.database import AsyncSessionLocal, Base, engine
from archplans.core.exceptions import PaymentProviderError, ServiceError
from archplans.main import app
from archplans.models.category import Category
from archplans.models.enums import ImageCategory, ImageStatus, LicenseType, PlanStatus, UserRole
from archplans.models.gallery import GalleryImage
from archplans.models.license import License
from archplans.models.plan import Plan, PlanFile, PlanImage, PlanTag
from archplans.models.user import User, UserProfile
from archplans.services.auth_service import create_access_token, get_password_hash
from archplans.services.payment_gateway import PaymentGateway, PaymentSession, get_payment_gateway
from archplans.services.sequence_service import generate_gallery_number, generate_plan_number

DEFAULT_PASSWORD = "Passw0rd!"


def run(coro):
    """在新事件循环中执行协程（引擎使用 NullPool，连接不跨循环）"""
    return asyncio.run(coro)


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def fresh_db():
    run(_reset_schema())
    yield


class FakeGateway(PaymentGateway):
    """记录收银台请求；fail=True 时模拟支付服务故障"""

    def __init__(self):
        self.fail = False
        self.calls = []
        self._counter = 0

    async def create_checkout_session(self, line_items, currency, success_url, cancel_url, customer_email, metadata):
        if self.fail:
            raise PaymentProviderError("支付会话创建失败，请稍后重试")
        self._counter += 1
        session_id = f"cs_test_{self._counter}"
        self.calls.append({
            "line_items": line_items,
            "currency": currency,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
            "metadata": metadata,
            "session_id": session_id,
        })
        return PaymentSession(session_id=session_id, url=f"https://checkout.test/{session_id}")

    def construct_event(self, payload, signature):
        if signature != "valid":
            raise ServiceError("签名校验失败")
        return json.loads(payload)


@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def client(gateway):
    with TestClient(app) as c:
        yield c


class Factory:
    """直接写库构造测试数据，返回已提交的 ORM 对象"""

    def __init__(self):
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, email=None, password=DEFAULT_PASSWORD, role=UserRole.CUSTOMER, name="Jane Buyer",
             is_active=True) -> User:
        email = email or f"user{self._next()}@example.com"

        async def _create():
            async with AsyncSessionLocal() as db:
                user = User(email=email, name=name, password_hash=get_password_hash(password),
                            role=role, is_active=is_active)
                user.profile = UserProfile(first_name=name.split()[0])
                db.add(user)
                await db.commit()
                await db.refresh(user)
                return user

        return run(_create())

    def admin(self, email=None) -> User:
        return self.user(email=email or f"admin{self._next()}@example.com", role=UserRole.ADMIN, name="Ada Admin")

    @staticmethod
    def headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    def category(self, name=None, slug=None) -> Category:
        n = self._next()

        async def _create():
            async with AsyncSessionLocal() as db:
                category = Category(name=name or f"Category {n}", slug=slug or f"category-{n}")
                db.add(category)
                await db.commit()
                await db.refresh(category)
                return category

        return run(_create())

    def plan(self, title=None, status=PlanStatus.PUBLISHED, tags=(), with_file=True, **overrides) -> Plan:
        n = self._next()
        fields = dict(
            title=title or f"Modern Villa {n}",
            slug=overrides.pop("slug", None) or f"modern-villa-{n}",
            description="Open plan villa with a courtyard",
            square_footage=2400,
            bedrooms=3,
            bathrooms=2.5,
            floors=2,
            style="MODERN",
            base_price=Decimal("499.00"),
            single_license_price=Decimal("799.00"),
            commercial_license_price=Decimal("1499.00"),
            unlimited_license_price=Decimal("2999.00"),
            status=status,
            published_at=datetime.utcnow() if status == PlanStatus.PUBLISHED else None,
        )
        fields.update(overrides)

        async def _create():
            async with AsyncSessionLocal() as db:
                plan = Plan(plan_number=await generate_plan_number(db), **fields)
                if with_file:
                    plan.files = [PlanFile(filename="floor-plan.pdf", file_type="FLOOR_PLAN", file_format="pdf",
                                           url="https://files.example.com/floor-plan.pdf")]
                plan.images = [PlanImage(url="https://img.example.com/villa.jpg", is_primary=True)]
                plan.tags = [PlanTag(tag=t) for t in tags]
                db.add(plan)
                await db.commit()
                await db.refresh(plan)
                return plan

        return run(_create())

    def image(self, title="Sunset Facade", status=ImageStatus.APPROVED, **overrides) -> GalleryImage:
        async def _create():
            async with AsyncSessionLocal() as db:
                image = GalleryImage(
                    gallery_number=await generate_gallery_number(db),
                    title=title,
                    category=overrides.pop("category", ImageCategory.RESIDENTIAL),
                    url=overrides.pop("url", "https://img.example.com/facade.jpg"),
                    mime_type="image/jpeg",
                    status=status,
                    **overrides,
                )
                db.add(image)
                await db.commit()
                await db.refresh(image)
                return image

        return run(_create())

    def license(self, user, plan=None, image=None, license_type=LicenseType.STANDARD, max_downloads=5,
                download_count=0, expires_at=None, is_active=True) -> License:
        n = self._next()

        async def _create():
            async with AsyncSessionLocal() as db:
                lic = License(
                    user_id=user.id,
                    plan_id=plan.id if plan else None,
                    image_id=image.id if image else None,
                    license_type=license_type,
                    license_key=f"{license_type.value[:2]}-T-{n}",
                    download_count=download_count,
                    max_downloads=max_downloads,
                    expires_at=expires_at,
                    is_active=is_active,
                )
                db.add(lic)
                await db.commit()
                await db.refresh(lic)
                return lic

        return run(_create())

    @staticmethod
    def get(model, pk):
        """重新从库中读取一行"""

        async def _get():
            async with AsyncSessionLocal() as db:
                return await db.get(model, pk)

        return run(_get())


@pytest.fixture
def factory():
    return Factory()
