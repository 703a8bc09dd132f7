import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Depends, HTTPException, UploadFile
from loguru import logger

from app.core.enum import MediaType
from app.core.errors import ApiError, internal_error
from app.core.settings import settings
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, get_store
from app.libs.formats.datetime import now_iso
from app.schemas.admin.poin import UpdatePoinMedia
from app.services.shares.storage import POIN_MEDIA_MIME_TYPES, StorageService

MEDIA_COLUMNS = (
    "id, poin_id, type, url, storage_path, caption, order_index, "
    "original_filename, mime_type, file_size, created_at"
)


async def media_by_poin(client: Any, poin_ids: Sequence[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Gom media theo poin_id, mỗi nhóm đã sắp theo order_index."""
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    if not poin_ids:
        return grouped
    rows = await fetch_all(
        client.table("poin_media_materis")
        .select(MEDIA_COLUMNS)
        .in_("poin_id", list(poin_ids))
        .order("order_index")
    )
    for row in rows:
        grouped[str(row["poin_id"])].append(row)
    return grouped


class PoinMediaService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        storage: StorageService = Depends(StorageService),
    ):
        self.store = store
        self.storage = storage

    @property
    def bucket(self) -> str:
        return settings.POIN_MEDIA_BUCKET

    async def _next_order_index(self, poin_id: str) -> int:
        last = await fetch_one(
            self.store.elevated.table("poin_media_materis")
            .select("order_index")
            .eq("poin_id", poin_id)
            .order("order_index", desc=True)
        )
        return int((last or {}).get("order_index") or 0) + 1

    async def _require_poin(self, poin_id: str) -> Dict[str, Any]:
        poin = await fetch_one(
            self.store.elevated.table("poin_details").select("id, sub_materi_id").eq("id", poin_id)
        )
        if not poin:
            raise ApiError(404, "POIN_NOT_FOUND", "Poin tidak ditemukan")
        return poin

    async def _store_one(
        self,
        poin_id: str,
        file: UploadFile,
        order_index: int,
        caption: Optional[str],
    ) -> Dict[str, Any]:
        """Upload 1 file + ghi record; insert lỗi thì dọn object vừa upload."""
        # 1️⃣ Kiểm tra MIME + dung lượng trước khi gọi storage
        content = await self.storage.read_validated(
            file, settings.POIN_MEDIA_MAX_BYTES, POIN_MEDIA_MIME_TYPES
        )
        mime = (file.content_type or "").lower()

        # 2️⃣ Upload
        stored = await self.storage.upload(self.bucket, poin_id, file.filename, content, mime)

        # 3️⃣ Ghi record
        try:
            record = await execute_one(
                self.store.elevated.table("poin_media_materis").insert(
                    {
                        "poin_id": poin_id,
                        "type": MediaType.from_mime(mime).value,
                        "url": stored.url,
                        "storage_path": stored.path,
                        "caption": caption,
                        "order_index": order_index,
                        "original_filename": stored.filename,
                        "mime_type": mime,
                        "file_size": stored.size,
                    }
                )
            )
            if not record:
                raise RuntimeError("Media record was not returned")
        except Exception:
            await self.storage.remove_quietly(self.bucket, [stored.path])
            raise
        return record

    async def store_many(
        self,
        poin_id: str,
        files: List[UploadFile],
        captions: Optional[List[Optional[str]]] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Upload nhiều file song song, mỗi file độc lập:
        file lỗi không làm hỏng các file khác. Trả về {uploaded, failed}.
        """
        captions = captions or []
        start = await self._next_order_index(poin_id)

        results = await asyncio.gather(
            *[
                self._store_one(
                    poin_id,
                    file,
                    start + i,
                    captions[i] if i < len(captions) and captions[i] else None,
                )
                for i, file in enumerate(files)
            ],
            return_exceptions=True,
        )

        uploaded: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []
        for file, result in zip(files, results):
            if isinstance(result, BaseException):
                if isinstance(result, HTTPException) and isinstance(result.detail, dict):
                    reason = {"code": result.detail.get("error_code"), "message": result.detail.get("message")}
                else:
                    reason = {"code": "UPLOAD_ERROR", "message": str(result)}
                logger.warning(f"⚠️ Upload media thất bại ({file.filename}) cho poin {poin_id}: {reason['message']}")
                failed.append({"filename": file.filename, **reason})
            else:
                uploaded.append(result)
        return {"uploaded": uploaded, "failed": failed}

    # ==============================
    # 🧩 API
    # ==============================

    async def upload_media_async(
        self,
        poin_id: str,
        files: List[UploadFile],
        captions: Optional[List[Optional[str]]] = None,
    ) -> Dict[str, Any]:
        if not files:
            raise ApiError(400, "NO_FILE", "Tidak ada file yang diunggah")
        try:
            await self._require_poin(poin_id)
            return await self.store_many(poin_id, files, captions)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MEDIA_UPLOAD_ERROR")

    async def list_media_async(self, poin_id: str) -> Dict[str, Any]:
        try:
            await self._require_poin(poin_id)
            grouped = await media_by_poin(self.store.elevated, [poin_id])
            media = grouped.get(poin_id, [])
            return {"poin_id": poin_id, "media": media, "total": len(media)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MEDIA_FETCH_ERROR")

    async def update_media_async(self, media_id: str, schema: UpdatePoinMedia) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(
                client.table("poin_media_materis").select("id").eq("id", media_id)
            )
            if not existing:
                raise ApiError(404, "MEDIA_NOT_FOUND", "Media tidak ditemukan")

            changes = schema.model_dump(exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            changes["updated_at"] = now_iso()

            return await execute_one(
                client.table("poin_media_materis").update(changes).eq("id", media_id)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MEDIA_UPDATE_ERROR")

    async def delete_media_async(self, media_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            media = await fetch_one(
                client.table("poin_media_materis")
                .select("id, poin_id, url, storage_path")
                .eq("id", media_id)
            )
            if not media:
                raise ApiError(404, "MEDIA_NOT_FOUND", "Media tidak ditemukan")

            # 1️⃣ Xoá record trước
            await client.table("poin_media_materis").delete().eq("id", media_id).execute()

            # 2️⃣ Xoá object (best-effort)
            path = media.get("storage_path") or self.storage.path_from_public_url(
                self.bucket, media.get("url")
            )
            removed = await self.storage.remove_quietly(self.bucket, [path]) if path else False

            return {"mediaId": media_id, "poinId": media.get("poin_id"), "storage_removed": removed}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MEDIA_DELETE_ERROR")
