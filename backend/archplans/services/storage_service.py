"""
对象存储服务（MinIO）：图库图片与图纸文件的上传、预签名下载链接、删除
"""
import io
import logging
import uuid
from datetime import timedelta
from typing import Optional

from minio import Minio
from minio.error import S3Error

from archplans.core.config import settings

logger = logging.getLogger(__name__)

_minio_client: Optional[Minio] = None
_bucket_checked = False


def get_minio_client() -> Minio:
    """获取 MinIO 客户端（懒加载）"""
    global _minio_client
    if _minio_client is None:
        _minio_client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION or None,
        )
    return _minio_client


def _ensure_bucket(client: Minio) -> None:
    global _bucket_checked
    if _bucket_checked:
        return
    if not client.bucket_exists(settings.MINIO_BUCKET_NAME):
        client.make_bucket(settings.MINIO_BUCKET_NAME)
    _bucket_checked = True


def public_url(object_key: str) -> str:
    base = settings.MINIO_PUBLIC_URL.rstrip("/")
    if not base:
        scheme = "https" if settings.MINIO_SECURE else "http"
        base = f"{scheme}://{settings.MINIO_ENDPOINT}"
    return f"{base}/{settings.MINIO_BUCKET_NAME}/{object_key}"


def build_object_key(folder: str, filename: str) -> str:
    """folder/uuid.ext，避免原文件名冲突"""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"{folder}/{uuid.uuid4().hex}.{ext}"


def upload_bytes(content: bytes, object_key: str, content_type: str) -> str:
    """上传对象并返回公开 URL。失败抛出 S3Error，由调用方处理。"""
    client = get_minio_client()
    _ensure_bucket(client)
    client.put_object(
        settings.MINIO_BUCKET_NAME,
        object_key,
        io.BytesIO(content),
        length=len(content),
        content_type=content_type,
    )
    logger.info("对象已上传 key=%s size=%s", object_key, len(content))
    return public_url(object_key)


def presigned_download_url(object_key: str, download_name: Optional[str] = None) -> str:
    """生成限时下载链接，download_name 作为浏览器保存的文件名"""
    client = get_minio_client()
    headers = None
    if download_name:
        headers = {"response-content-disposition": f'attachment; filename="{download_name}"'}
    return client.presigned_get_object(
        settings.MINIO_BUCKET_NAME,
        object_key,
        expires=timedelta(seconds=settings.DOWNLOAD_URL_EXPIRE_SECONDS),
        response_headers=headers,
    )


def resolve_download_url(storage_key: Optional[str], url: Optional[str], download_name: Optional[str] = None) -> str:
    """存于 MinIO 的对象给预签名链接，否则返回登记的外部 URL"""
    if storage_key:
        return presigned_download_url(storage_key, download_name)
    if not url:
        raise ValueError("资源既没有存储键也没有 URL")
    return url


def remove_object(object_key: str) -> None:
    """删除对象；对象不存在时只记日志"""
    try:
        get_minio_client().remove_object(settings.MINIO_BUCKET_NAME, object_key)
    except S3Error as e:
        logger.warning("删除 MinIO 对象失败 key=%s: %s", object_key, e)
