import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.admin.sub_materi import CreateSubMateri, UpdateSubMateri
from app.services.shares.material import MaterialService
from app.services.shares.quiz import QuizService

router = APIRouter(prefix="/materials", tags=["Materials"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_materials(
    module_id: uuid.UUID | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None),
    authorization: AuthorizationService = Depends(AuthorizationService),
    material_service: MaterialService = Depends(MaterialService),
):
    user = await authorization.get_current_user_if_any()
    data = await material_service.list_materials_async(
        user, str(module_id) if module_id else None, page, limit, search
    )
    return success("MATERIAL_FETCH_SUCCESS", "Materi berhasil diambil", data)


@router.get("/{sub_materi_id}", status_code=status.HTTP_200_OK)
async def get_material(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    material_service: MaterialService = Depends(MaterialService),
):
    user = await authorization.get_current_user_if_any()
    data = await material_service.get_material_async(str(sub_materi_id), user)
    return success("MATERIAL_DETAIL_SUCCESS", "Detail materi berhasil diambil", data)


@router.get("/{sub_materi_id}/quiz", status_code=status.HTTP_200_OK)
async def get_material_quiz(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    user = await authorization.get_current_user_if_any()
    data = await quiz_service.get_quiz_for_sub_materi_async(str(sub_materi_id), user)
    return success("QUIZ_FETCH_SUCCESS", "Quiz berhasil diambil", data)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_material(
    schema: CreateSubMateri = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    material_service: MaterialService = Depends(MaterialService),
):
    await authorization.require_admin()
    data = await material_service.create_material_async(schema)
    return success("MATERIAL_CREATE_SUCCESS", "Materi berhasil dibuat", data)


@router.put("/{sub_materi_id}", status_code=status.HTTP_200_OK)
async def update_material(
    sub_materi_id: uuid.UUID,
    schema: UpdateSubMateri = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    material_service: MaterialService = Depends(MaterialService),
):
    await authorization.require_admin()
    data = await material_service.update_material_async(str(sub_materi_id), schema)
    return success("MATERIAL_UPDATE_SUCCESS", "Materi berhasil diperbarui", data)


@router.delete("/{sub_materi_id}", status_code=status.HTTP_200_OK)
async def delete_material(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    material_service: MaterialService = Depends(MaterialService),
):
    await authorization.require_admin()
    data = await material_service.delete_material_async(str(sub_materi_id))
    return success("MATERIAL_DELETE_SUCCESS", "Materi berhasil dihapus", data)
