from typing import Any, Dict, List

from fastapi import Depends, HTTPException

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, get_store
from app.libs.formats.datetime import now_iso
from app.schemas.admin.schedule import CreateSchedule, UpdateSchedule

SCHEDULE_COLUMNS = "id, title, description, location, date, created_by, created_at, updated_at"


class ScheduleService:
    """Lịch Posyandu: xem công khai, admin quản lý."""

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    async def list_schedules_async(self) -> List[Dict[str, Any]]:
        try:
            return await fetch_all(
                self.store.scoped.table("posyandu_schedules").select(SCHEDULE_COLUMNS).order("date")
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "SCHEDULE_FETCH_ERROR")

    async def create_schedule_async(self, user: CurrentUser, schema: CreateSchedule) -> Dict[str, Any]:
        try:
            payload = schema.model_dump(mode="json")
            payload["created_by"] = user.id
            created = await execute_one(self.store.elevated.table("posyandu_schedules").insert(payload))
            if not created:
                raise ApiError(500, "SCHEDULE_CREATE_ERROR", "Gagal membuat jadwal")
            return created
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "SCHEDULE_CREATE_ERROR")

    async def update_schedule_async(self, schedule_id: str, schema: UpdateSchedule) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("posyandu_schedules").select("id").eq("id", schedule_id))
            if not existing:
                raise ApiError(404, "SCHEDULE_NOT_FOUND", "Jadwal tidak ditemukan")

            changes = schema.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            changes["updated_at"] = now_iso()
            return await execute_one(client.table("posyandu_schedules").update(changes).eq("id", schedule_id))
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "SCHEDULE_UPDATE_ERROR")

    async def delete_schedule_async(self, schedule_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(client.table("posyandu_schedules").select("id, title").eq("id", schedule_id))
            if not existing:
                raise ApiError(404, "SCHEDULE_NOT_FOUND", "Jadwal tidak ditemukan")
            await client.table("posyandu_schedules").delete().eq("id", schedule_id).execute()
            return {"id": schedule_id, "title": existing.get("title")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "SCHEDULE_DELETE_ERROR")
