"""
图库上传：文件名与真实类型校验、入库失败清理对象
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from archplans.core.database import AsyncSessionLocal
from archplans.core.exceptions import ServiceError
from archplans.models.enums import ImageCategory
from archplans.models.gallery import GalleryImage
from archplans.services import file_security_service, gallery_service, storage_service
from archplans.services.gallery_service import GalleryService

from conftest import run

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 64


@pytest.fixture
def stored(monkeypatch):
    """替换 MinIO 上传与删除，记录对象键"""
    objects = {"uploaded": [], "removed": []}

    def _upload(content, object_key, content_type):
        objects["uploaded"].append((object_key, content_type))
        return f"https://files.test/{object_key}"

    monkeypatch.setattr(storage_service, "upload_bytes", _upload)
    monkeypatch.setattr(storage_service, "remove_object", objects["removed"].append)
    return objects


def _upload(client, headers, filename, body, content_type):
    return client.post(
        "/api/admin/upload",
        files={"file": (filename, body, content_type)},
        data={"title": "Facade", "category": "RESIDENTIAL"},
        headers=headers,
    )


@pytest.mark.parametrize("ext,content,mime", [
    ("png", PNG_BYTES, "image/png"),
    ("jpg", JPEG_BYTES, "image/jpeg"),
    ("jpeg", JPEG_BYTES, "image/jpeg"),
    ("webp", WEBP_BYTES, "image/webp"),
])
def test_validate_image_content_detects_type(ext, content, mime):
    assert file_security_service.validate_image_content(content, ext) == mime


@pytest.mark.parametrize("ext,content", [
    ("png", b"<script>alert(1)</script>"),
    ("jpg", PNG_BYTES),
    ("webp", b"RIFF\x24\x00\x00\x00AVI LIST"),
    ("png", b"\x89PNG\r\n\x1a\n<script>alert(1)</script>"),
    ("png", b""),
])
def test_validate_image_content_rejects_mismatch(ext, content):
    with pytest.raises(ServiceError):
        file_security_service.validate_image_content(content, ext)


@pytest.mark.parametrize("filename", ["../etc/passwd.png", "a/b.png", "bad<name>.png", "", "x" * 201 + ".png"])
def test_validate_filename_rejects_unsafe_names(filename):
    with pytest.raises(ServiceError):
        file_security_service.validate_filename(filename)


def test_upload_rejects_script_disguised_as_png(client, factory, stored):
    headers = factory.headers(factory.admin())
    resp = _upload(client, headers, "facade.png", b"<script>alert(1)</script>", "image/png")
    assert resp.status_code == 400
    assert stored["uploaded"] == []


def test_upload_stores_detected_mime_type(client, factory, stored):
    headers = factory.headers(factory.admin())
    resp = _upload(client, headers, "facade.png", PNG_BYTES, "application/octet-stream")
    assert resp.status_code == 201
    image = resp.json()
    assert image["mime_type"] == "image/png"
    assert image["status"] == "PENDING"
    assert image["file_size"] == len(PNG_BYTES)
    [(object_key, content_type)] = stored["uploaded"]
    assert object_key.startswith("gallery/") and object_key.endswith(".png")
    assert content_type == "image/png"
    assert image["url"] == f"https://files.test/{object_key}"


def test_upload_removes_object_when_insert_fails(factory, stored, monkeypatch):
    admin = factory.admin()

    async def _broken_number(db):
        raise OperationalError("UPDATE sequences", {}, Exception("database is locked"))

    monkeypatch.setattr(gallery_service, "generate_gallery_number", _broken_number)

    async def _go():
        async with AsyncSessionLocal() as db:
            with pytest.raises(OperationalError):
                await GalleryService(db).upload_image(
                    PNG_BYTES, "facade.png", "image/png", "Facade", ImageCategory.RESIDENTIAL, admin.id
                )
            return await db.scalar(select(func.count()).select_from(GalleryImage))

    assert run(_go()) == 0
    [(object_key, _)] = stored["uploaded"]
    assert stored["removed"] == [object_key]
