"""Storage service for media files.

Uses local disk for now. Designed to swap for S3/MinIO later via the
StorageBackend interface. Images are resized with a fixed transformation
profile before they are written; videos are stored as uploaded.
"""
import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from twilsta.core.config import settings
from twilsta.core.exceptions import AppError

logger = logging.getLogger(__name__)

IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
VIDEO_TYPES = {"video/mp4", "video/quicktime"}

EXT_MAP = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
}


@dataclass(frozen=True)
class TransformProfile:
    width: int
    height: int
    crop: str = "fill"  # fill: cover and center-crop | fit: shrink to fit inside the box


@dataclass(frozen=True)
class UploadKind:
    folder: str
    allowed: frozenset[str]
    max_size_mb: int
    transform: TransformProfile


POST_UPLOAD = UploadKind("posts", frozenset(IMAGE_TYPES | VIDEO_TYPES), 50, TransformProfile(1080, 1080, "fill"))
AVATAR_UPLOAD = UploadKind("avatars", frozenset(IMAGE_TYPES - {"image/gif"}), 5, TransformProfile(400, 400, "fill"))
STORY_UPLOAD = UploadKind("stories", frozenset(IMAGE_TYPES | VIDEO_TYPES), 30, TransformProfile(1080, 1920, "fit"))


@dataclass
class StoredMedia:
    url: str
    media_type: str  # IMAGE | VIDEO
    width: int | None = None
    height: int | None = None


class StorageBackend(Protocol):
    """Protocol for storage backends. Implement LocalStorage now, S3Storage later."""

    def save(
        self,
        data: bytes,
        *,
        folder: str,
        key: str,
        content_type: str,
        transform: TransformProfile | None = None,
    ) -> StoredMedia:
        """Save file and return its public URL and dimensions."""
        ...

    def delete(self, url: str) -> bool:
        """Delete file by URL. Returns True if deleted."""
        ...


def media_type_for(content_type: str) -> str:
    return "VIDEO" if content_type in VIDEO_TYPES else "IMAGE"


def transform_image(data: bytes, profile: TransformProfile, quality: int | None = None) -> tuple[bytes, int, int]:
    """Resize image bytes to ``profile``; returns (jpeg bytes, width, height)."""
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as exc:
        raise AppError(400, "FILE_VALIDATION_ERROR", "Uploaded file is not a valid image") from exc

    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    size = (profile.width, profile.height)
    if profile.crop == "fill":
        image = ImageOps.fit(image, size, method=Image.Resampling.LANCZOS)
    else:
        image.thumbnail(size, Image.Resampling.LANCZOS)

    out = io.BytesIO()
    image.save(out, format="JPEG", quality=quality or settings.IMAGE_QUALITY, optimize=True)
    return out.getvalue(), image.width, image.height


class LocalStorage:
    """Store files on local disk. Path: uploads/{folder}/{key}{ext}"""

    def __init__(self, base_dir: str | None = None, base_url: str | None = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR).resolve()
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def _folder_path(self, folder: str) -> Path:
        path = self.base_dir / folder
        path.mkdir(parents=True, exist_ok=True)
        return path

    def save(
        self,
        data: bytes,
        *,
        folder: str,
        key: str,
        content_type: str,
        transform: TransformProfile | None = None,
    ) -> StoredMedia:
        media_type = media_type_for(content_type)
        width = height = None
        ext = EXT_MAP.get(content_type, ".bin")
        if media_type == "IMAGE" and transform is not None:
            data, width, height = transform_image(data, transform)
            ext = ".jpg"
        filename = f"{key}{ext}"
        (self._folder_path(folder) / filename).write_bytes(data)
        return StoredMedia(
            url=f"{self.base_url}/uploads/{folder}/{filename}",
            media_type=media_type,
            width=width,
            height=height,
        )

    def delete(self, url: str) -> bool:
        """Delete file by URL. Returns True if deleted."""
        if "/uploads/" not in url:
            return False
        rel = url.split("/uploads/", 1)[1]
        filepath = (self.base_dir / rel).resolve()
        if self.base_dir not in filepath.parents:
            return False
        if filepath.exists():
            filepath.unlink()
            return True
        return False


def media_key(kind: str, user_id) -> str:
    """``{kind}_{user_id}_{epoch_ms}``"""
    return f"{kind}_{user_id}_{int(time.time() * 1000)}"


async def read_upload(file: UploadFile | None, kind: UploadKind) -> tuple[bytes, str]:
    """Validate type and size of an upload; returns (bytes, content type)."""
    if file is None or not file.filename:
        raise AppError(400, "NO_FILE", "No file uploaded")
    content_type = file.content_type or ""
    if content_type not in kind.allowed:
        raise AppError(
            400,
            "FILE_VALIDATION_ERROR",
            f"Invalid file type: {content_type or 'unknown'}",
            details={"allowed": sorted(kind.allowed)},
        )
    data = await file.read()
    if len(data) > kind.max_size_mb * 1024 * 1024:
        raise AppError(400, "FILE_VALIDATION_ERROR", f"File too large. Max {kind.max_size_mb}MB")
    if not data:
        raise AppError(400, "FILE_VALIDATION_ERROR", "Uploaded file is empty")
    return data, content_type


async def save_upload(file: UploadFile | None, kind: UploadKind, key_prefix: str, user_id) -> StoredMedia:
    data, content_type = await read_upload(file, kind)
    return get_storage().save(
        data,
        folder=kind.folder,
        key=media_key(key_prefix, user_id),
        content_type=content_type,
        transform=kind.transform,
    )


def delete_media_quietly(url: str | None, *, context: str) -> bool:
    """Best-effort removal; failures are logged and never raised."""
    if not url:
        return False
    try:
        return get_storage().delete(url)
    except Exception:
        logger.warning("media_delete_failed context=%s url=%s", context, url, exc_info=True)
        return False


# Singleton - swap implementation here when moving to S3
_storage: StorageBackend | None = None


def get_storage() -> StorageBackend:
    global _storage
    if _storage is None:
        _storage = LocalStorage()
    return _storage
