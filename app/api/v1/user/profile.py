from fastapi import APIRouter, Body, Depends, File, UploadFile, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.user.profile import ChangePassword, ProfileUpdate
from app.services.user.profile import ProfileService

router = APIRouter(prefix="/users/me", tags=["User Profile"])


@router.get("", status_code=status.HTTP_200_OK)
async def get_my_profile(
    profile_service: ProfileService = Depends(ProfileService),
    authorization_service: AuthorizationService = Depends(AuthorizationService),
):
    identity = await authorization_service.get_identity()
    data = await profile_service.get_my_profile_async(identity)
    return success("PROFILE_FETCH_SUCCESS", "Profil berhasil diambil", data)


@router.put("", status_code=status.HTTP_200_OK)
async def update_my_profile(
    profile_data: ProfileUpdate = Body(),
    profile_service: ProfileService = Depends(ProfileService),
    authorization_service: AuthorizationService = Depends(AuthorizationService),
):
    identity = await authorization_service.get_identity()
    data, created = await profile_service.update_my_profile_async(identity, profile_data)
    if created:
        return success("PROFILE_CREATED", "Profil berhasil dibuat", data)
    return success("PROFILE_UPDATED", "Profil berhasil diperbarui", data)


@router.post("/profile-photo", status_code=status.HTTP_200_OK)
async def upload_profile_photo(
    photo: UploadFile = File(...),
    profile_service: ProfileService = Depends(ProfileService),
    authorization_service: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization_service.get_current_user()
    data = await profile_service.upload_profile_photo_async(user, photo)
    return success("PROFILE_PHOTO_UPLOADED", "Foto profil berhasil diunggah", data)


@router.delete("/profile-photo", status_code=status.HTTP_200_OK)
async def delete_profile_photo(
    profile_service: ProfileService = Depends(ProfileService),
    authorization_service: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization_service.get_current_user()
    data = await profile_service.delete_profile_photo_async(user)
    return success("PROFILE_PHOTO_DELETED", "Foto profil berhasil dihapus", data)


@router.post("/change-password", status_code=status.HTTP_200_OK)
async def change_password(
    schema: ChangePassword = Body(),
    profile_service: ProfileService = Depends(ProfileService),
    authorization_service: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization_service.get_current_user()
    data = await profile_service.change_password_async(user, schema)
    return success("PASSWORD_CHANGED", "Password berhasil diubah", data)
