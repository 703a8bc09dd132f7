import uuid

from fastapi import APIRouter, Body, Depends, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.user.progress import CompletePoinBody, CompleteSubMateriBody, SubmitModuleProgress
from app.services.user.progress import ProgressService

router = APIRouter(prefix="/progress", tags=["User Progress"])


@router.post("/materials/{sub_materi_id}/poins/{poin_id}/complete", status_code=status.HTTP_200_OK)
async def complete_poin(
    sub_materi_id: uuid.UUID,
    poin_id: uuid.UUID,
    body: CompletePoinBody = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.complete_poin_async(
        user, str(sub_materi_id), str(poin_id), str(body.module_id)
    )
    if data.get("already_completed"):
        return success("POIN_ALREADY_COMPLETED", "Poin sudah diselesaikan sebelumnya", data)
    return success("POIN_COMPLETED", "Poin berhasil diselesaikan", data)


@router.post("/sub-materis/{sub_materi_id}/complete", status_code=status.HTTP_200_OK)
async def complete_sub_materi(
    sub_materi_id: uuid.UUID,
    body: CompleteSubMateriBody = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.complete_sub_materi_async(user, str(sub_materi_id), str(body.module_id))
    return success("SUB_MATERI_COMPLETED", "Sub materi berhasil diselesaikan", data)


@router.get("/sub-materis/{sub_materi_id}", status_code=status.HTTP_200_OK)
async def get_sub_materi_progress(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.get_sub_materi_progress_async(user, str(sub_materi_id))
    return success("PROGRESS_FETCH_SUCCESS", "Progress berhasil diambil", data)


@router.get("/modules", status_code=status.HTTP_200_OK)
async def get_modules_progress(
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    items = await progress_service.get_user_modules_progress_async(user)
    return success("PROGRESS_FETCH_SUCCESS", "Progress berhasil diambil", {"items": items, "total": len(items)})


@router.get("/modules/{module_id}", status_code=status.HTTP_200_OK)
async def get_module_progress(
    module_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.get_module_progress_async(user, str(module_id))
    return success("PROGRESS_FETCH_SUCCESS", "Progress berhasil diambil", data)


@router.put("/modules/{module_id}", status_code=status.HTTP_200_OK)
async def submit_module_progress(
    module_id: uuid.UUID,
    schema: SubmitModuleProgress = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.submit_module_progress_async(user, str(module_id), schema)
    return success("PROGRESS_UPDATE_SUCCESS", "Progress modul berhasil disimpan", data)


@router.get("/materials/{sub_materi_id}/access", status_code=status.HTTP_200_OK)
async def check_access(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    progress_service: ProgressService = Depends(ProgressService),
):
    user = await authorization.get_current_user()
    data = await progress_service.can_access_sub_materi_async(user, str(sub_materi_id))
    return success("ACCESS_CHECK_SUCCESS", "Akses berhasil dicek", data)
