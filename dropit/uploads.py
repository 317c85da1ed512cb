"""
Upload validation, naming and listing helpers.
"""

from __future__ import annotations

from dropit.config import Settings
from dropit.errors import ValidationFailed
from dropit.storage import StoredBlob

EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
}
DEFAULT_TYPE = "application/octet-stream"

# First extension listed for a type wins (image/jpeg -> jpg).
TYPE_EXTENSIONS = {
    mime: extension for extension, mime in reversed(list(EXTENSION_TYPES.items()))
}


def validate_upload(size: int, content_type: str | None, settings: Settings) -> None:
    if size > settings.max_upload_bytes:
        max_mb = round(settings.max_upload_bytes / (1024 * 1024))
        raise ValidationFailed(f"文件大小不能超过 {max_mb}MB")
    if content_type not in settings.allowed_mime_types:
        raise ValidationFailed("不支持的文件类型")


def build_upload_pathname(
    filename: str,
    timestamp_ms: int,
    prefix: str = "dropit/",
    content_type: str | None = None,
) -> str:
    """
    ``dropit/<timestamp>.<ext>``.

    The stored extension must agree with the validated content type, since
    the local fallback serves files with a type guessed from it. The
    client's extension is kept when it maps to ``content_type``; otherwise
    the type's own extension is used, and a type with no known extension
    gets none.
    """
    name = filename.rsplit("/", 1)[-1]
    extension = name.rsplit(".", 1)[-1] if "." in name else ""
    if extension and EXTENSION_TYPES.get(extension.lower()) == content_type:
        return f"{prefix}{timestamp_ms}.{extension}"
    extension = TYPE_EXTENSIONS.get(content_type or "")
    if extension:
        return f"{prefix}{timestamp_ms}.{extension}"
    return f"{prefix}{timestamp_ms}"


def guess_type_from_path(pathname: str) -> str:
    name = pathname.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_TYPE
    return EXTENSION_TYPES.get(name.rsplit(".", 1)[-1].lower(), DEFAULT_TYPE)


def to_uploaded_file(blob: StoredBlob) -> dict:
    return {
        "url": blob.url,
        "pathname": blob.pathname,
        "size": blob.size,
        "uploadedAt": blob.uploaded_at,
        "type": guess_type_from_path(blob.pathname) if blob.pathname else DEFAULT_TYPE,
        "filename": (blob.pathname.rsplit("/", 1)[-1] or "unknown")
        if blob.pathname
        else "unknown",
    }


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    value = round(value, 2)
    return f"{value:g} {units[index]}"
