"""
图库图片服务：前台浏览、后台登记/上传/审核
"""
import asyncio
import logging
from typing import List, Optional

from minio.error import S3Error
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.config import settings
from archplans.core.exceptions import ExternalServiceError, NotFoundError, ServiceError
from archplans.models.enums import ImageCategory, ImageStatus
from archplans.models.gallery import GalleryImage
from archplans.schemas.gallery import GalleryImageCreate, GalleryImageUpdate
from archplans.services import file_security_service, storage_service
from archplans.services.sequence_service import generate_gallery_number

logger = logging.getLogger(__name__)


class GalleryService:
    """图库服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_public_images(
        self,
        category: Optional[ImageCategory] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        """已审核通过且启用的图片：{images, total_count, has_more}"""
        conds = [GalleryImage.is_active.is_(True), GalleryImage.status == ImageStatus.APPROVED]
        if category is not None:
            conds.append(GalleryImage.category == category)
        total = await self.db.scalar(select(func.count()).select_from(GalleryImage).where(*conds)) or 0
        result = await self.db.execute(
            select(GalleryImage)
            .where(*conds)
            .order_by(GalleryImage.uploaded_at.desc(), GalleryImage.id.desc())
            .offset(offset)
            .limit(limit)
        )
        images = list(result.scalars().all())
        return {"images": images, "total_count": total, "has_more": offset + len(images) < total}

    async def admin_list_images(
        self,
        status: Optional[ImageStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[GalleryImage], int]:
        conds = [GalleryImage.is_active.is_(True)]
        if status is not None:
            conds.append(GalleryImage.status == status)
        total = await self.db.scalar(select(func.count()).select_from(GalleryImage).where(*conds)) or 0
        result = await self.db.execute(
            select(GalleryImage)
            .where(*conds)
            .order_by(GalleryImage.uploaded_at.desc(), GalleryImage.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_image(self, image_id: int) -> GalleryImage:
        image = await self.db.get(GalleryImage, image_id)
        if image is None or not image.is_active:
            raise NotFoundError("图片不存在")
        return image

    async def create_from_url(self, data: GalleryImageCreate, uploaded_by_id: int) -> GalleryImage:
        """登记外部 URL 图片，待审核"""
        gallery_number = await generate_gallery_number(self.db)
        image = GalleryImage(
            gallery_number=gallery_number,
            status=ImageStatus.PENDING,
            uploaded_by_id=uploaded_by_id,
            **data.model_dump(),
        )
        self.db.add(image)
        await self.db.commit()
        await self.db.refresh(image)
        logger.info("登记图库图片 %s", gallery_number)
        return image

    async def upload_image(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        title: str,
        category: ImageCategory,
        uploaded_by_id: int,
        description: Optional[str] = None,
    ) -> GalleryImage:
        """校验文件名与真实类型，上传到 MinIO 后入库，待审核。入库失败时删除已上传的对象。"""
        file_security_service.validate_filename(filename)
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise ServiceError(f"文件超过大小限制 {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB")
        ext = file_security_service.file_extension(filename)
        mime = file_security_service.validate_image_content(content, ext)
        if content_type and content_type != mime:
            logger.warning("上传声明类型 %s 与实际类型 %s 不符，按实际类型保存", content_type, mime)

        object_key = storage_service.build_object_key("gallery", filename)
        try:
            url = await asyncio.to_thread(storage_service.upload_bytes, content, object_key, mime)
        except S3Error as e:
            logger.error("图片上传 MinIO 失败: %s", e)
            raise ExternalServiceError("文件存储暂不可用，请稍后重试")

        try:
            gallery_number = await generate_gallery_number(self.db)
            image = GalleryImage(
                gallery_number=gallery_number,
                title=title,
                description=description,
                category=category,
                url=url,
                storage_key=object_key,
                mime_type=mime,
                file_size=len(content),
                status=ImageStatus.PENDING,
                uploaded_by_id=uploaded_by_id,
            )
            self.db.add(image)
            await self.db.commit()
        except SQLAlchemyError:
            logger.error("图库图片入库失败，删除已上传对象 key=%s", object_key)
            await self.db.rollback()
            await asyncio.to_thread(storage_service.remove_object, object_key)
            raise
        await self.db.refresh(image)
        logger.info("上传图库图片 %s key=%s", gallery_number, object_key)
        return image

    async def update_image(self, image_id: int, data: GalleryImageUpdate) -> GalleryImage:
        """修改标题、分类、描述或审核状态"""
        image = await self.get_image(image_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(image, key, value)
        await self.db.commit()
        await self.db.refresh(image)
        return image

    async def delete_image(self, image_id: int) -> None:
        """软删除：已售授权仍引用该图片"""
        image = await self.get_image(image_id)
        image.is_active = False
        await self.db.commit()
