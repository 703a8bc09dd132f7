import inspect
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from fastapi import Depends, UploadFile
from loguru import logger

from app.core.errors import ApiError
from app.db.store import StoreClients, get_store
from app.libs.formats.text import safe_filename

POIN_MEDIA_MIME_TYPES = [
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    # Videos
    "video/mp4",
    "video/webm",
    "video/ogg",
    "video/avi",
    "video/mov",
    "video/quicktime",
    # Audio
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/ogg",
    "audio/aac",
    "audio/m4a",
    # Documents
    "application/pdf",
]

PROFILE_PHOTO_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]


@dataclass
class StoredObject:
    bucket: str
    path: str
    url: str
    filename: str
    mime_type: str
    size: int


class StorageService:
    """Upload / xoá object trên Supabase Storage."""

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    @staticmethod
    async def read_validated(
        file: UploadFile,
        max_bytes: int,
        allowed_types: Optional[Iterable[str]] = None,
    ) -> bytes:
        """Kiểm tra MIME + kích thước trước khi chạm tới storage."""
        mime = (file.content_type or "").lower()
        if allowed_types is not None and mime not in allowed_types:
            raise ApiError(
                400,
                "UNSUPPORTED_FILE_TYPE",
                f"Tipe file tidak didukung: {mime or 'unknown'}",
            )

        limit_mb = max_bytes // (1024 * 1024)
        declared = getattr(file, "size", None)
        if declared is not None and declared > max_bytes:
            raise ApiError(413, "FILE_TOO_LARGE", f"Ukuran file maksimal {limit_mb}MB")

        content = await file.read()
        if len(content) > max_bytes:
            raise ApiError(413, "FILE_TOO_LARGE", f"Ukuran file maksimal {limit_mb}MB")
        if not content:
            raise ApiError(400, "EMPTY_FILE", "File kosong")
        return content

    async def upload(
        self,
        bucket: str,
        folder: str,
        filename: Optional[str],
        content: bytes,
        mime_type: str,
    ) -> StoredObject:
        client = self.store.elevated
        name = safe_filename(filename)
        path = f"{folder}/{uuid.uuid4().hex}-{name}"

        bucket_api = client.storage.from_(bucket)
        await bucket_api.upload(path, content, {"content-type": mime_type, "upsert": "false"})

        url = bucket_api.get_public_url(path)
        if inspect.isawaitable(url):
            url = await url

        return StoredObject(
            bucket=bucket,
            path=path,
            url=str(url),
            filename=filename or name,
            mime_type=mime_type,
            size=len(content),
        )

    async def remove_quietly(self, bucket: str, paths: List[str]) -> bool:
        """Xoá object kiểu best-effort: lỗi chỉ được log lại."""
        paths = [p for p in paths if p]
        if not paths:
            return True
        try:
            await self.store.elevated.storage.from_(bucket).remove(paths)
            return True
        except Exception as e:
            logger.warning(f"⚠️ Không xoá được object {paths} trong bucket {bucket}: {e}")
            return False

    @staticmethod
    def path_from_public_url(bucket: str, url: Optional[str]) -> Optional[str]:
        """Suy ra object path từ public URL: .../object/public/<bucket>/<path>."""
        if not url:
            return None
        marker = f"/{bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1].split("?", 1)[0] or None
