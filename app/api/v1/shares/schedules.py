import uuid

from fastapi import APIRouter, Body, Depends, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.admin.schedule import CreateSchedule, UpdateSchedule
from app.services.shares.schedule import ScheduleService

router = APIRouter(prefix="/schedules", tags=["Posyandu Schedules"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_schedules(
    schedule_service: ScheduleService = Depends(ScheduleService),
):
    items = await schedule_service.list_schedules_async()
    return success("SCHEDULE_FETCH_SUCCESS", "Jadwal berhasil diambil", {"items": items})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_schedule(
    schema: CreateSchedule = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    schedule_service: ScheduleService = Depends(ScheduleService),
):
    admin = await authorization.require_admin()
    data = await schedule_service.create_schedule_async(admin, schema)
    return success("SCHEDULE_CREATE_SUCCESS", "Jadwal berhasil dibuat", data)


@router.put("/{schedule_id}", status_code=status.HTTP_200_OK)
async def update_schedule(
    schedule_id: uuid.UUID,
    schema: UpdateSchedule = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    schedule_service: ScheduleService = Depends(ScheduleService),
):
    await authorization.require_admin()
    data = await schedule_service.update_schedule_async(str(schedule_id), schema)
    return success("SCHEDULE_UPDATE_SUCCESS", "Jadwal berhasil diperbarui", data)


@router.delete("/{schedule_id}", status_code=status.HTTP_200_OK)
async def delete_schedule(
    schedule_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    schedule_service: ScheduleService = Depends(ScheduleService),
):
    await authorization.require_admin()
    data = await schedule_service.delete_schedule_async(str(schedule_id))
    return success("SCHEDULE_DELETE_SUCCESS", "Jadwal berhasil dihapus", data)
