"""
下载服务：校验授权、消耗额度、登记下载记录并返回下载链接
"""
import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.config import settings
from archplans.core.exceptions import AuthenticationError, DownloadDeniedError, NotFoundError
from archplans.models.enums import ImageStatus, LicenseType, PlanStatus
from archplans.models.gallery import GalleryImage
from archplans.models.plan import Plan
from archplans.services import license_service, storage_service

logger = logging.getLogger(__name__)

_MIME_EXT = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_") or "image"


def image_extension(image: GalleryImage) -> str:
    if image.mime_type and image.mime_type in _MIME_EXT:
        return _MIME_EXT[image.mime_type]
    path = (image.storage_key or image.url or "").split("?", 1)[0]
    tail = path.rsplit("/", 1)[-1]
    if "." in tail:
        return tail.rsplit(".", 1)[-1].lower()
    return "jpg"


def build_download_filename(image: GalleryImage, license_type: LicenseType, when: Optional[datetime] = None) -> str:
    """<标题>_<授权>_<日期>.<扩展名>"""
    when = when or datetime.utcnow()
    return f"{_slugify(image.title)}_{license_type.value.lower()}_{when.strftime('%Y-%m-%d')}.{image_extension(image)}"


class DownloadService:
    """下载服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def download_plan(
        self,
        user_id: int,
        plan_id: int,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """已购授权下载图纸全部文件，消耗一次额度"""
        result = await self.db.execute(
            select(Plan)
            .options(selectinload(Plan.files))
            .where(Plan.id == plan_id, Plan.is_active.is_(True), Plan.status == PlanStatus.PUBLISHED)
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            raise NotFoundError("图纸不存在")

        license = await license_service.find_usable_license(self.db, user_id, plan_id=plan_id)
        if license is None:
            logger.info("图纸下载被拒绝 user_id=%s plan_id=%s", user_id, plan_id)
            raise DownloadDeniedError("没有有效授权或下载次数已用尽")

        files = [
            {
                "filename": f.filename,
                "file_type": f.file_type,
                "file_format": f.file_format,
                "url": storage_service.resolve_download_url(f.storage_key, f.url, f.filename),
            }
            for f in plan.files
            if f.storage_key or f.url
        ]

        license = await license_service.consume_download(self.db, license.id)
        license_service.record_download(
            self.db,
            license_type=license.license_type,
            user_id=user_id,
            plan_id=plan_id,
            license_id=license.id,
            ip_address=ip,
            user_agent=user_agent,
        )
        await self.db.commit()
        logger.info("图纸下载 user_id=%s plan=%s license=%s", user_id, plan.plan_number, license.id)
        return {
            "plan_id": plan.id,
            "plan_number": plan.plan_number,
            "license_type": license.license_type,
            "downloads_remaining": license_service.downloads_remaining(license),
            "files": files,
            "expires_in": settings.DOWNLOAD_URL_EXPIRE_SECONDS,
        }

    async def download_image(
        self,
        user_id: Optional[int],
        image_id: int,
        license_type: LicenseType = LicenseType.STANDARD,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """
        图库图片下载。PREVIEW 任何人可下载且不计数；
        其他等级需要登录并持有同级或更高等级的有效授权。
        """
        result = await self.db.execute(
            select(GalleryImage).where(
                GalleryImage.id == image_id,
                GalleryImage.is_active.is_(True),
                GalleryImage.status == ImageStatus.APPROVED,
            )
        )
        image = result.scalar_one_or_none()
        if image is None:
            raise NotFoundError("图片不存在")

        filename = build_download_filename(image, license_type)

        if license_type == LicenseType.PREVIEW:
            url = storage_service.resolve_download_url(image.storage_key, image.url, filename)
            license_service.record_download(
                self.db,
                license_type=LicenseType.PREVIEW,
                user_id=user_id,
                image_id=image.id,
                ip_address=ip,
                user_agent=user_agent,
            )
            await self.db.commit()
            return {
                "image_id": image.id,
                "url": url,
                "filename": filename,
                "license_type": LicenseType.PREVIEW,
                "downloads_remaining": None,
                "expires_in": settings.DOWNLOAD_URL_EXPIRE_SECONDS,
            }

        if user_id is None:
            raise AuthenticationError("下载该授权等级需要登录")

        license = await license_service.find_usable_license(
            self.db, user_id, image_id=image.id, min_type=license_type
        )
        if license is None:
            logger.info("图片下载被拒绝 user_id=%s image_id=%s type=%s", user_id, image_id, license_type.value)
            raise DownloadDeniedError("没有该等级的有效授权或下载次数已用尽")

        url = storage_service.resolve_download_url(image.storage_key, image.url, filename)
        license = await license_service.consume_download(self.db, license.id)
        license_service.record_download(
            self.db,
            license_type=license.license_type,
            user_id=user_id,
            image_id=image.id,
            license_id=license.id,
            ip_address=ip,
            user_agent=user_agent,
        )
        await self.db.commit()
        return {
            "image_id": image.id,
            "url": url,
            "filename": filename,
            "license_type": license.license_type,
            "downloads_remaining": license_service.downloads_remaining(license),
            "expires_in": settings.DOWNLOAD_URL_EXPIRE_SECONDS,
        }
