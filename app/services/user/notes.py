from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.libs.formats.text import clean_search
from app.schemas.user.notes import CreateNote, UpdateNote


class NotesService:
    """Ghi chú cá nhân của user; mọi query đều lọc theo user_id."""

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    @property
    def client(self):
        return self.store.scoped

    async def _owned(self, user: CurrentUser, note_id: str) -> Dict[str, Any]:
        note = await fetch_one(
            self.client.table("notes").select("*").eq("id", note_id).eq("user_id", user.id)
        )
        if not note:
            raise ApiError(404, "NOTE_NOT_FOUND", "Note tidak ditemukan")
        return note

    async def _patch(self, user: CurrentUser, note_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes["updated_at"] = now_iso()
        return await execute_one(
            self.client.table("notes").update(changes).eq("id", note_id).eq("user_id", user.id)
        )

    async def list_notes_async(
        self,
        user: CurrentUser,
        q: Optional[str] = None,
        pinned: Optional[bool] = None,
        archived: Optional[bool] = None,
        module_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = (
                self.client.table("notes")
                .select("*", count="exact")
                .eq("user_id", user.id)
                .order("pinned", desc=True)
                .order("updated_at", desc=True)
            )
            if pinned is not None:
                query = query.eq("pinned", pinned)
            # mặc định ẩn note đã lưu trữ
            query = query.eq("archived", bool(archived))
            if module_id:
                query = query.eq("module_id", module_id)

            term = clean_search(q)
            if term:
                query = query.or_(f"title.ilike.%{term}%,content.ilike.%{term}%")

            start, end = page_range(page, limit)
            notes, total = await fetch_page(query.range(start, end))
            return {
                "notes": notes,
                "pagination": paginate(total, page, limit),
                "filters": {"search": term or None, "pinned": pinned, "archived": bool(archived)},
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTES_FETCH_ERROR")

    async def get_note_async(self, user: CurrentUser, note_id: str) -> Dict[str, Any]:
        try:
            return await self._owned(user, note_id)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTES_FETCH_ERROR")

    async def create_note_async(self, user: CurrentUser, schema: CreateNote) -> Dict[str, Any]:
        try:
            now = now_iso()
            payload = schema.model_dump(mode="json")
            payload.update({"user_id": user.id, "tags": payload.get("tags") or [], "created_at": now, "updated_at": now})
            created = await execute_one(self.client.table("notes").insert(payload))
            if not created:
                raise ApiError(500, "NOTE_CREATE_ERROR", "Gagal membuat note")
            return created
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTE_CREATE_ERROR")

    async def update_note_async(self, user: CurrentUser, note_id: str, schema: UpdateNote) -> Dict[str, Any]:
        try:
            await self._owned(user, note_id)
            changes = schema.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            return await self._patch(user, note_id, changes)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTE_UPDATE_ERROR")

    async def toggle_async(self, user: CurrentUser, note_id: str, field: str) -> Dict[str, Any]:
        """Đảo cờ pinned / archived."""
        try:
            note = await self._owned(user, note_id)
            return await self._patch(user, note_id, {field: not bool(note.get(field))})
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTE_UPDATE_ERROR")

    async def delete_note_async(self, user: CurrentUser, note_id: str) -> Dict[str, Any]:
        try:
            note = await self._owned(user, note_id)
            await self.client.table("notes").delete().eq("id", note_id).eq("user_id", user.id).execute()
            return {"id": note_id, "title": note.get("title")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "NOTE_DELETE_ERROR")
