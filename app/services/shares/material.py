from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.libs.formats.text import clean_search
from app.schemas.admin.sub_materi import CreateSubMateri, UpdateSubMateri
from app.services.shares.poin import is_admin_caller, load_visible_sub_materi, poins_with_media

SUB_MATERI_COLUMNS = "id, module_id, title, content, order_index, published, created_at, updated_at"


class MaterialService:
    """Sub-materi (materials) của một module."""

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    def _reader(self, user: Optional[CurrentUser]):
        return self.store.elevated if is_admin_caller(user) else self.store.scoped

    async def list_materials_async(
        self,
        user: Optional[CurrentUser],
        module_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            query = self._reader(user).table("sub_materis").select(SUB_MATERI_COLUMNS, count="exact")
            if module_id:
                query = query.eq("module_id", module_id).order("order_index")
            else:
                query = query.order("created_at", desc=True)
            if not is_admin_caller(user):
                query = query.eq("published", True)

            term = clean_search(search)
            if term:
                query = query.or_(f"title.ilike.%{term}%,content.ilike.%{term}%")

            start, end = page_range(page, limit)
            items, total = await fetch_page(query.range(start, end))
            return {"items": items, "pagination": paginate(total, page, limit)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MATERIAL_FETCH_ERROR")

    async def get_material_async(self, sub_materi_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        """Sub-materi + poin (theo order_index) + media của từng poin."""
        try:
            client = self._reader(user)
            sub_materi = await load_visible_sub_materi(client, sub_materi_id, user, SUB_MATERI_COLUMNS)
            module = await fetch_one(
                client.table("modules").select("id, title, slug").eq("id", sub_materi["module_id"])
            )
            poins = await poins_with_media(client, sub_materi_id, user)
            return {**sub_materi, "module": module, "poins": poins}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MATERIAL_FETCH_ERROR")

    async def create_material_async(self, schema: CreateSubMateri) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            module_id = str(schema.module_id)

            module = await fetch_one(client.table("modules").select("id").eq("id", module_id))
            if not module:
                raise ApiError(404, "MODULE_NOT_FOUND", "Module not found")

            payload = schema.model_dump(mode="json")
            if payload.get("order_index") is None:
                last = await fetch_one(
                    client.table("sub_materis")
                    .select("order_index")
                    .eq("module_id", module_id)
                    .order("order_index", desc=True)
                )
                payload["order_index"] = int((last or {}).get("order_index") or 0) + 1

            created = await execute_one(client.table("sub_materis").insert(payload))
            if not created:
                raise ApiError(500, "MATERIAL_CREATE_ERROR", "Gagal membuat materi")
            return created
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MATERIAL_CREATE_ERROR")

    async def update_material_async(self, sub_materi_id: str, schema: UpdateSubMateri) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("sub_materis").select("id").eq("id", sub_materi_id))
            if not existing:
                raise ApiError(404, "MATERIAL_NOT_FOUND", "Material not found")

            changes = schema.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")

            if changes.get("module_id"):
                module = await fetch_one(client.table("modules").select("id").eq("id", changes["module_id"]))
                if not module:
                    raise ApiError(404, "MODULE_NOT_FOUND", "Module not found")

            changes["updated_at"] = now_iso()
            return await execute_one(client.table("sub_materis").update(changes).eq("id", sub_materi_id))
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MATERIAL_UPDATE_ERROR")

    async def delete_material_async(self, sub_materi_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(
                client.table("sub_materis").select("id, title").eq("id", sub_materi_id)
            )
            if not existing:
                raise ApiError(404, "MATERIAL_NOT_FOUND", "Material not found")

            await client.table("sub_materis").delete().eq("id", sub_materi_id).execute()
            return {"id": sub_materi_id, "title": existing.get("title")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MATERIAL_DELETE_ERROR")
