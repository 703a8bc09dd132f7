import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.admin.module import CreateModule, UpdateModule
from app.services.shares.module import ModuleService

router = APIRouter(prefix="/modules", tags=["Modules"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_modules(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, description="Tìm theo tiêu đề hoặc mô tả"),
    authorization: AuthorizationService = Depends(AuthorizationService),
    module_service: ModuleService = Depends(ModuleService),
):
    user = await authorization.get_current_user_if_any()
    data = await module_service.list_modules_async(user, page, limit, search)
    return success("MODULE_FETCH_SUCCESS", "Modul berhasil diambil", data)


@router.get("/{module_id}", status_code=status.HTTP_200_OK)
async def get_module(
    module_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    module_service: ModuleService = Depends(ModuleService),
):
    user = await authorization.get_current_user_if_any()
    data = await module_service.get_module_async(str(module_id), user)
    return success("MODULE_DETAIL_SUCCESS", "Detail modul berhasil diambil", data)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_module(
    schema: CreateModule = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    module_service: ModuleService = Depends(ModuleService),
):
    await authorization.require_admin()
    data = await module_service.create_module_async(schema)
    return success("MODULE_CREATE_SUCCESS", "Modul berhasil dibuat", data)


@router.put("/{module_id}", status_code=status.HTTP_200_OK)
async def update_module(
    module_id: uuid.UUID,
    schema: UpdateModule = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    module_service: ModuleService = Depends(ModuleService),
):
    await authorization.require_admin()
    data = await module_service.update_module_async(str(module_id), schema)
    return success("MODULE_UPDATE_SUCCESS", "Modul berhasil diperbarui", data)


@router.delete("/{module_id}", status_code=status.HTTP_200_OK)
async def delete_module(
    module_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    module_service: ModuleService = Depends(ModuleService),
):
    await authorization.require_admin()
    data = await module_service.delete_module_async(str(module_id))
    return success("MODULE_DELETE_SUCCESS", "Modul berhasil dihapus", data)
