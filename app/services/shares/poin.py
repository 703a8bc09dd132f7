from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException, UploadFile

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, get_store
from app.libs.formats.datetime import now_iso
from app.schemas.admin.poin import CreatePoin, UpdatePoin
from app.services.shares.poin_media import PoinMediaService, media_by_poin

POIN_COLUMNS = (
    "id, sub_materi_id, title, content_html, duration_label, duration_minutes, "
    "order_index, created_at, updated_at"
)
SUB_MATERI_SUMMARY_COLUMNS = "id, module_id, title, published, order_index"

EMPTY_PROGRESS = {"is_completed": False, "completed_at": None}


def is_admin_caller(user: Optional[CurrentUser]) -> bool:
    return bool(user and user.is_admin)


async def load_visible_sub_materi(
    client: Any, sub_materi_id: str, user: Optional[CurrentUser], columns: str = SUB_MATERI_SUMMARY_COLUMNS
) -> Dict[str, Any]:
    """404 nếu không có, 403 nếu chưa publish và caller không phải admin."""
    sub_materi = await fetch_one(client.table("sub_materis").select(columns).eq("id", sub_materi_id))
    if not sub_materi:
        raise ApiError(404, "SUB_MATERI_NOT_FOUND", "Sub materi tidak ditemukan")
    if not sub_materi.get("published") and not is_admin_caller(user):
        raise ApiError(403, "SUB_MATERI_NOT_PUBLISHED", "Sub materi belum dipublikasi")
    return sub_materi


async def poin_progress_map(client: Any, user_id: str, poin_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    if not poin_ids:
        return {}
    rows = await fetch_all(
        client.table("user_poin_progress")
        .select("poin_id, is_completed, completed_at")
        .eq("user_id", user_id)
        .in_("poin_id", poin_ids)
    )
    return {
        str(r["poin_id"]): {"is_completed": bool(r.get("is_completed")), "completed_at": r.get("completed_at")}
        for r in rows
    }


async def poins_with_media(client: Any, sub_materi_id: str, user: Optional[CurrentUser]) -> List[Dict[str, Any]]:
    """Poin theo order_index, kèm media; user thường (đã login) có thêm user_progress."""
    poins = await fetch_all(
        client.table("poin_details")
        .select(POIN_COLUMNS)
        .eq("sub_materi_id", sub_materi_id)
        .order("order_index")
    )
    ids = [str(p["id"]) for p in poins]
    media = await media_by_poin(client, ids)

    with_progress = user is not None and not user.is_admin
    progress = await poin_progress_map(client, user.id, ids) if with_progress else {}

    result = []
    for poin in poins:
        item = {**poin, "media": media.get(str(poin["id"]), [])}
        if with_progress:
            item["user_progress"] = progress.get(str(poin["id"]), dict(EMPTY_PROGRESS))
        result.append(item)
    return result


class PoinService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        media_service: PoinMediaService = Depends(PoinMediaService),
    ):
        self.store = store
        self.media_service = media_service

    def _reader(self, user: Optional[CurrentUser]):
        return self.store.elevated if is_admin_caller(user) else self.store.scoped

    async def _order_taken(self, sub_materi_id: str, order_index: int, exclude_id: Optional[str] = None) -> bool:
        query = (
            self.store.elevated.table("poin_details")
            .select("id")
            .eq("sub_materi_id", sub_materi_id)
            .eq("order_index", order_index)
        )
        if exclude_id:
            query = query.neq("id", exclude_id)
        return await fetch_one(query) is not None

    async def _next_order_index(self, sub_materi_id: str) -> int:
        last = await fetch_one(
            self.store.elevated.table("poin_details")
            .select("order_index")
            .eq("sub_materi_id", sub_materi_id)
            .order("order_index", desc=True)
        )
        return int((last or {}).get("order_index") or 0) + 1

    # ==============================
    # 🧩 ĐỌC
    # ==============================

    async def list_by_sub_materi_async(self, sub_materi_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        try:
            client = self._reader(user)
            sub_materi = await load_visible_sub_materi(client, sub_materi_id, user)
            poins = await poins_with_media(client, sub_materi_id, user)
            return {"sub_materi": sub_materi, "poin_details": poins, "total": len(poins)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_FETCH_ERROR")

    async def get_poin_async(self, poin_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        try:
            client = self._reader(user)
            poin = await fetch_one(client.table("poin_details").select(POIN_COLUMNS).eq("id", poin_id))
            if not poin:
                raise ApiError(404, "POIN_NOT_FOUND", "Poin detail tidak ditemukan")

            sub_materi = await fetch_one(
                client.table("sub_materis").select(SUB_MATERI_SUMMARY_COLUMNS).eq("id", poin["sub_materi_id"])
            )
            if not sub_materi:
                raise ApiError(404, "POIN_NOT_FOUND", "Poin detail tidak ditemukan")
            if not sub_materi.get("published") and not is_admin_caller(user):
                raise ApiError(403, "SUB_MATERI_NOT_PUBLISHED", "Sub materi belum dipublikasi")

            media = await media_by_poin(client, [poin_id])
            result = {**poin, "sub_materi": sub_materi, "media": media.get(poin_id, [])}

            if user is not None and not user.is_admin:
                progress = await poin_progress_map(client, user.id, [poin_id])
                result["user_progress"] = progress.get(poin_id, dict(EMPTY_PROGRESS))
            return result
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_FETCH_ERROR")

    # ==============================
    # 🧩 GHI (admin)
    # ==============================

    async def _insert_poin(self, sub_materi_id: str, schema: CreatePoin) -> Dict[str, Any]:
        sub_materi = await fetch_one(
            self.store.elevated.table("sub_materis").select("id").eq("id", sub_materi_id)
        )
        if not sub_materi:
            raise ApiError(404, "SUB_MATERI_NOT_FOUND", "Sub materi tidak ditemukan")

        if schema.order_index:
            order_index = schema.order_index
            if await self._order_taken(sub_materi_id, order_index):
                raise ApiError(409, "ORDER_INDEX_CONFLICT", "Order index sudah digunakan dalam sub materi ini")
        else:
            order_index = await self._next_order_index(sub_materi_id)

        payload = schema.model_dump()
        payload.update(
            {
                "sub_materi_id": sub_materi_id,
                "title": schema.title.strip(),
                "content_html": schema.content_html.strip(),
                "order_index": order_index,
            }
        )
        created = await execute_one(self.store.elevated.table("poin_details").insert(payload))
        if not created:
            raise ApiError(500, "POIN_CREATE_ERROR", "Gagal membuat poin detail")
        return created

    async def create_poin_async(self, sub_materi_id: str, schema: CreatePoin) -> Dict[str, Any]:
        try:
            return await self._insert_poin(sub_materi_id, schema)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_CREATE_ERROR")

    async def create_poin_with_media_async(
        self,
        sub_materi_id: str,
        schema: CreatePoin,
        files: List[UploadFile],
        captions: Optional[List[Optional[str]]] = None,
    ) -> Dict[str, Any]:
        try:
            # 1️⃣ Tạo poin
            poin = await self._insert_poin(sub_materi_id, schema)

            # 2️⃣ Upload media (từng file độc lập)
            summary = {"uploaded": [], "failed": []}
            if files:
                summary = await self.media_service.store_many(str(poin["id"]), files, captions)

            return {"poin": poin, **summary, "totalMedia": len(summary["uploaded"])}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_CREATE_ERROR")

    async def update_poin_async(self, poin_id: str, schema: UpdatePoin) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(
                client.table("poin_details").select("id, sub_materi_id, order_index").eq("id", poin_id)
            )
            if not existing:
                raise ApiError(404, "POIN_NOT_FOUND", "Poin detail tidak ditemukan")

            changes = schema.model_dump(exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")

            new_index = changes.get("order_index")
            if new_index is not None and new_index != existing.get("order_index"):
                if await self._order_taken(existing["sub_materi_id"], new_index, exclude_id=poin_id):
                    raise ApiError(409, "ORDER_INDEX_CONFLICT", "Order index sudah digunakan dalam sub materi ini")

            changes["updated_at"] = now_iso()
            return await execute_one(client.table("poin_details").update(changes).eq("id", poin_id))
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_UPDATE_ERROR")

    async def delete_poin_async(self, poin_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("poin_details").select("id, title").eq("id", poin_id))
            if not existing:
                raise ApiError(404, "POIN_NOT_FOUND", "Poin detail tidak ditemukan")

            has_progress = await fetch_one(
                client.table("user_poin_progress").select("poin_id").eq("poin_id", poin_id)
            )
            if has_progress:
                raise ApiError(
                    409,
                    "POIN_HAS_PROGRESS",
                    "Tidak dapat menghapus poin yang sudah memiliki progress pengguna",
                )

            await client.table("poin_details").delete().eq("id", poin_id).execute()
            return {"deletedId": poin_id, "title": existing.get("title")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "POIN_DELETE_ERROR")
