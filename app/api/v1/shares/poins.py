import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.core.deps import AuthorizationService
from app.core.errors import ApiError
from app.libs.formats.response import success
from app.schemas.admin.poin import CreatePoin, UpdatePoin, UpdatePoinMedia
from app.services.shares.poin import PoinService
from app.services.shares.poin_media import PoinMediaService

# Đăng ký trước router /materials để /materials/poins/... không rơi vào /materials/{id}
router = APIRouter(prefix="/materials", tags=["Poin Details"])


@router.get("/poins/{poin_id}", status_code=status.HTTP_200_OK)
async def get_poin(
    poin_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    user = await authorization.get_current_user_if_any()
    data = await poin_service.get_poin_async(str(poin_id), user)
    return success("POIN_FETCH_SUCCESS", "Poin detail berhasil diambil", data)


@router.get("/{sub_materi_id}/poins", status_code=status.HTTP_200_OK)
async def list_poins(
    sub_materi_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    user = await authorization.get_current_user_if_any()
    data = await poin_service.list_by_sub_materi_async(str(sub_materi_id), user)
    return success("POIN_FETCH_SUCCESS", "Poin details berhasil diambil", data)


@router.post("/{sub_materi_id}/poins", status_code=status.HTTP_201_CREATED)
async def create_poin(
    sub_materi_id: uuid.UUID,
    schema: CreatePoin = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    await authorization.require_admin()
    data = await poin_service.create_poin_async(str(sub_materi_id), schema)
    return success("POIN_CREATE_SUCCESS", "Poin detail berhasil dibuat", data)


@router.post("/{sub_materi_id}/poins-with-media", status_code=status.HTTP_201_CREATED)
async def create_poin_with_media(
    sub_materi_id: uuid.UUID,
    title: str = Form(...),
    content_html: str = Form(""),
    duration_label: Optional[str] = Form(None),
    duration_minutes: Optional[int] = Form(None),
    order_index: Optional[int] = Form(None),
    captions: List[str] = Form([]),
    media: List[UploadFile] = File([]),
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    await authorization.require_admin()
    try:
        schema = CreatePoin(
            title=title,
            content_html=content_html,
            duration_label=duration_label,
            duration_minutes=duration_minutes,
            order_index=order_index,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    data = await poin_service.create_poin_with_media_async(str(sub_materi_id), schema, media, captions)
    return success("POIN_WITH_MEDIA_CREATE_SUCCESS", "Poin dan media berhasil dibuat", data)


@router.put("/poins/{poin_id}", status_code=status.HTTP_200_OK)
async def update_poin(
    poin_id: uuid.UUID,
    schema: UpdatePoin = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    await authorization.require_admin()
    data = await poin_service.update_poin_async(str(poin_id), schema)
    return success("POIN_UPDATE_SUCCESS", "Poin detail berhasil diperbarui", data)


@router.delete("/poins/{poin_id}", status_code=status.HTTP_200_OK)
async def delete_poin(
    poin_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    poin_service: PoinService = Depends(PoinService),
):
    await authorization.require_admin()
    data = await poin_service.delete_poin_async(str(poin_id))
    return success("POIN_DELETE_SUCCESS", "Poin detail berhasil dihapus", data)


# ==============================
# 🧩 MEDIA
# ==============================


@router.get("/poins/{poin_id}/media", status_code=status.HTTP_200_OK)
async def list_poin_media(
    poin_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    media_service: PoinMediaService = Depends(PoinMediaService),
):
    await authorization.require_admin()
    data = await media_service.list_media_async(str(poin_id))
    return success("MEDIA_FETCH_SUCCESS", "Media berhasil diambil", data)


@router.post("/poins/{poin_id}/media", status_code=status.HTTP_201_CREATED)
async def upload_poin_media(
    poin_id: uuid.UUID,
    media: List[UploadFile] = File(...),
    captions: List[str] = Form([]),
    authorization: AuthorizationService = Depends(AuthorizationService),
    media_service: PoinMediaService = Depends(PoinMediaService),
):
    await authorization.require_admin()
    data = await media_service.upload_media_async(str(poin_id), media, captions)
    if not data["uploaded"]:
        raise ApiError(400, "MEDIA_UPLOAD_FAILED", "Semua file gagal diunggah", data)
    if data["failed"]:
        return success("MEDIA_UPLOAD_PARTIAL", "Sebagian media berhasil diunggah", data)
    return success("MEDIA_UPLOAD_SUCCESS", "Media berhasil diunggah", data)


@router.put("/poins/media/{media_id}", status_code=status.HTTP_200_OK)
async def update_poin_media(
    media_id: uuid.UUID,
    schema: UpdatePoinMedia = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    media_service: PoinMediaService = Depends(PoinMediaService),
):
    await authorization.require_admin()
    data = await media_service.update_media_async(str(media_id), schema)
    return success("MEDIA_UPDATE_SUCCESS", "Media berhasil diperbarui", data)


@router.delete("/poins/media/{media_id}", status_code=status.HTTP_200_OK)
async def delete_poin_media(
    media_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    media_service: PoinMediaService = Depends(PoinMediaService),
):
    await authorization.require_admin()
    data = await media_service.delete_media_async(str(media_id))
    return success("MEDIA_DELETE_SUCCESS", "Media berhasil dihapus", data)
