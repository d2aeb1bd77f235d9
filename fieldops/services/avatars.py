from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status

from fieldops.core.config import AVATAR_MAX_BYTES, UPLOADS_DIR

logger = logging.getLogger(__name__)
AVATAR_PREFIX = "[AVATAR]"

AVATAR_URL_PREFIX = "/uploads/avatars/"
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


def avatars_dir() -> Path:
    return Path(UPLOADS_DIR) / "avatars"


def read_avatar_upload(file: UploadFile) -> tuple[bytes, str]:
    """Validate an avatar upload and return ``(bytes, extension)``.

    Runs before anything touches the database or the disk.
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    ext = Path(file.filename).suffix.lower()
    content_type = (file.content_type or "").lower()
    if ext not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed (jpeg, jpg, png, gif, webp)",
        )

    data = file.file.read(AVATAR_MAX_BYTES + 1)
    if len(data) > AVATAR_MAX_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File exceeds 5MB")
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
    return data, ext


def avatar_filename(user_id: int, ext: str, now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"avatar-{user_id}-{now_ms}{ext}"


def write_avatar(data: bytes, user_id: int, ext: str) -> Path:
    directory = avatars_dir()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / avatar_filename(user_id, ext)
    with path.open("wb") as buffer:
        buffer.write(data)
    return path


def avatar_url(path: Path) -> str:
    return f"{AVATAR_URL_PREFIX}{path.name}"


def discard_file(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("%s could not remove file path=%s", AVATAR_PREFIX, path)


def remove_local_avatar(url: Optional[str]) -> None:
    """Delete a previously stored avatar when it lives in our uploads dir."""
    if not url or not url.startswith(AVATAR_URL_PREFIX):
        return
    name = Path(url).name
    if not name:
        return
    discard_file(avatars_dir() / name)
