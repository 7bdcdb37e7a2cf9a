"""
Image upload storage under ``UPLOAD_DIR``.

Files are streamed to disk under a random name; type and size are checked
before the caller creates any database row, and a rejected file never
stays on disk.
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import UploadFile

from app.config import settings
from app.utils.errors import UploadRejectedError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024

# extension -> accepted MIME types
_IMAGE_MIME_TYPES = {
    ".jpeg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".jpg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".png": {"image/png"},
    ".gif": {"image/gif"},
    ".svg": {"image/svg+xml"},
}


def _safe_remove(path: str) -> None:
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove file %r: %s", path, exc)


def check_image_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """
    Validate the extension and declared MIME type of an upload.

    Returns the lower-cased extension.

    Raises:
        UploadRejectedError: not an allowed image type.
    """
    if not filename:
        raise UploadRejectedError("No image file provided")
    ext = Path(filename).suffix.lower()
    allowed_exts = [e.lower() for e in settings.ALLOWED_IMAGE_EXTENSIONS]
    mime = (content_type or "").split(";")[0].strip().lower()
    if ext not in allowed_exts or mime not in _IMAGE_MIME_TYPES.get(ext, set()):
        raise UploadRejectedError("Only image files are allowed!")
    return ext


def url_for(stored_name: str) -> str:
    return f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{stored_name}"


def path_for_url(image_url: str) -> Optional[str]:
    """Filesystem path of an ``/uploads/<name>`` URL, or ``None`` for foreign URLs."""
    prefix = settings.UPLOAD_URL_PREFIX.rstrip("/") + "/"
    if not image_url or not image_url.startswith(prefix):
        return None
    name = os.path.basename(image_url[len(prefix):])
    if not name:
        return None
    return os.path.join(settings.UPLOAD_DIR, name)


async def save_image(upload: UploadFile) -> str:
    """
    Stream *upload* into UPLOAD_DIR and return its server-relative URL.

    Raises:
        UploadRejectedError: wrong type (400) or larger than MAX_IMAGE_SIZE (413).
    """
    ext = check_image_type(upload.filename, upload.content_type)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{ext}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    file_size = 0

    try:
        async with aiofiles.open(file_path, "wb") as out:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                file_size += len(chunk)
                if file_size > settings.MAX_IMAGE_SIZE:
                    raise UploadRejectedError(
                        f"File exceeds {settings.MAX_IMAGE_SIZE // (1024 * 1024)} MB limit.",
                        status_code=413,
                    )
                await out.write(chunk)
    except Exception:
        _safe_remove(file_path)
        raise

    logger.info("Stored upload %r as %s (%d bytes)", upload.filename, stored_name, file_size)
    return url_for(stored_name)


def remove_image(image_url: str) -> None:
    path = path_for_url(image_url)
    if path:
        _safe_remove(path)
