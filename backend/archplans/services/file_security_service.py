"""
上传文件安全校验：文件名、文件头魔数（真实类型）
"""
import re
from typing import Optional

from archplans.core.config import settings
from archplans.core.exceptions import ServiceError

FILE_NAME_MAX_LENGTH = 200

# 扩展名 -> (文件头魔数, 偏移)。webp 为 RIFF 容器，第 8 字节起为 WEBP
_MAGIC_BY_TYPE: dict[str, list[tuple[bytes, int]]] = {
    "jpg": [(b"\xff\xd8\xff", 0)],
    "jpeg": [(b"\xff\xd8\xff", 0)],
    "png": [(b"\x89PNG\r\n\x1a\n", 0)],
    "webp": [(b"RIFF", 0), (b"WEBP", 8)],
}

_MIME_BY_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

_INVALID_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_SCRIPT_PATTERN = re.compile(rb"<\s*script|javascript:", re.IGNORECASE)


def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].strip().lower() if "." in filename else ""


def validate_filename(filename: str) -> None:
    """校验文件名：长度、禁止路径穿越与控制字符"""
    if not filename or not filename.strip():
        raise ServiceError("文件名为空")
    name = filename.strip()
    if len(name) > FILE_NAME_MAX_LENGTH:
        raise ServiceError(f"文件名长度不能超过 {FILE_NAME_MAX_LENGTH} 个字符")
    if ".." in name or "/" in name or "\\" in name or _INVALID_CHARS.search(name):
        raise ServiceError("文件名不得包含路径或非法字符")


def validate_image_content(content: bytes, extension: str) -> str:
    """
    按文件头魔数校验图片真实类型与扩展名一致，返回据此确定的 MIME 类型。
    客户端声明的 Content-Type 不参与判断。
    """
    if not content:
        raise ServiceError("文件为空")
    ext = (extension or "").strip().lower()
    allowed = settings.allowed_image_types_list
    if ext not in allowed:
        raise ServiceError(f"不支持的图片类型，允许: {', '.join(allowed)}")
    magics: Optional[list[tuple[bytes, int]]] = _MAGIC_BY_TYPE.get(ext)
    if not magics:
        raise ServiceError(f"无法校验该图片类型: .{ext}")
    for magic, offset in magics:
        if content[offset: offset + len(magic)] != magic:
            raise ServiceError(f"文件真实类型与扩展名不符（扩展名为 .{ext}），已拒绝上传")
    if _SCRIPT_PATTERN.search(content):
        raise ServiceError("文件包含可疑脚本内容，已拒绝上传")
    return _MIME_BY_TYPE[ext]
