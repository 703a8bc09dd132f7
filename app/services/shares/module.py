import time
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from slugify import slugify

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.libs.formats.text import clean_search
from app.schemas.admin.module import CreateModule, UpdateModule

MODULE_COLUMNS = (
    "id, title, slug, description, published, created_at, updated_at, "
    "duration_label, duration_minutes, lessons, difficulty, category"
)
MODULE_MATERIAL_COLUMNS = "id, module_id, title, content, published, order_index, created_at, updated_at"


class ModuleService:
    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    def _reader(self, user: Optional[CurrentUser]):
        # admin đọc cả bản nháp → dùng client quyền cao
        return self.store.elevated if user and user.is_admin else self.store.scoped

    async def _unique_slug(self, title: str) -> str:
        slug = slugify(title) or f"module-{int(time.time() * 1000)}"
        existing = await fetch_one(
            self.store.elevated.table("modules").select("id").eq("slug", slug)
        )
        if existing:
            slug = f"{slug}-{int(time.time() * 1000)}"
        return slug

    async def list_modules_async(
        self,
        user: Optional[CurrentUser],
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            is_admin = bool(user and user.is_admin)
            query = (
                self._reader(user)
                .table("modules")
                .select(MODULE_COLUMNS, count="exact")
                .order("created_at", desc=True)
            )
            if not is_admin:
                query = query.eq("published", True)

            term = clean_search(search)
            if term:
                query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")

            start, end = page_range(page, limit)
            items, total = await fetch_page(query.range(start, end))
            return {"items": items, "pagination": paginate(total, page, limit)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MODULE_FETCH_ERROR")

    async def get_module_async(self, module_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        """Module + danh sách sub-materi con (user thường chỉ thấy bản đã publish)."""
        try:
            is_admin = bool(user and user.is_admin)
            client = self._reader(user)

            module = await fetch_one(
                client.table("modules").select(MODULE_COLUMNS).eq("id", module_id)
            )
            if not module:
                raise ApiError(404, "MODULE_NOT_FOUND", "Module not found")
            if not module.get("published") and not is_admin:
                raise ApiError(403, "MODULE_NOT_PUBLISHED", "Modul belum dipublikasi")

            query = (
                client.table("sub_materis")
                .select(MODULE_MATERIAL_COLUMNS)
                .eq("module_id", module_id)
                .order("order_index")
            )
            if not is_admin:
                query = query.eq("published", True)
            materials = await fetch_all(query)

            return {**module, "materials": materials}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MODULE_FETCH_ERROR")

    async def create_module_async(self, schema: CreateModule) -> Dict[str, Any]:
        try:
            payload = schema.model_dump(mode="json")
            payload["slug"] = await self._unique_slug(schema.title)
            created = await execute_one(self.store.elevated.table("modules").insert(payload))
            if not created:
                raise ApiError(500, "MODULE_CREATE_ERROR", "Failed to create module")
            return created
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MODULE_CREATE_ERROR")

    async def update_module_async(self, module_id: str, schema: UpdateModule) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("modules").select("id").eq("id", module_id))
            if not existing:
                raise ApiError(404, "MODULE_NOT_FOUND", "Module not found")

            changes = schema.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            changes["updated_at"] = now_iso()

            return await execute_one(client.table("modules").update(changes).eq("id", module_id))
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MODULE_UPDATE_ERROR")

    async def delete_module_async(self, module_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("modules").select("id").eq("id", module_id))
            if not existing:
                raise ApiError(404, "MODULE_NOT_FOUND", "Module not found")

            # sub_materis / poin_details bị xoá theo cascade ở DB
            await client.table("modules").delete().eq("id", module_id).execute()
            return {"id": module_id}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "MODULE_DELETE_ERROR")
