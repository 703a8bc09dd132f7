from fastapi import APIRouter, Body, Depends, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.auth.user import LoginUser, ProfileUpsert, RefreshToken, RegisterUser
from app.services.shares.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service(auth: AuthService = Depends(AuthService)) -> AuthService:
    return auth


def get_authorization_service(
    authorization_service: AuthorizationService = Depends(AuthorizationService),
) -> AuthorizationService:
    return authorization_service


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    schema: RegisterUser = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    data = await auth_service.register_async(schema)
    if data.get("requires_confirmation"):
        return success("REGISTER_PENDING_CONFIRMATION", "Silakan cek email untuk konfirmasi", data)
    return success("REGISTER_SUCCESS", "Registrasi berhasil", data)


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(
    schema: LoginUser = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    data = await auth_service.login_async(schema)
    return success("LOGIN_SUCCESS", "Login berhasil", data)


@router.post("/refresh", status_code=status.HTTP_200_OK)
async def refresh(
    schema: RefreshToken = Body(),
    auth_service: AuthService = Depends(get_auth_service),
):
    data = await auth_service.refresh_async(schema.refresh_token)
    return success("TOKEN_REFRESHED", "Token berhasil diperbarui", data)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    auth_service: AuthService = Depends(get_auth_service),
):
    data = await auth_service.logout_async()
    return success("LOGOUT_SUCCESS", "Logout berhasil", data)


@router.post("/profile", status_code=status.HTTP_200_OK)
async def create_or_update_profile(
    schema: ProfileUpsert = Body(),
    auth_service: AuthService = Depends(get_auth_service),
    authorization_service: AuthorizationService = Depends(get_authorization_service),
):
    identity = await authorization_service.get_identity()
    data = await auth_service.create_or_update_profile_async(identity, schema)
    if data["created"]:
        return success("PROFILE_CREATED", "Profil berhasil dibuat", data)
    return success("PROFILE_UPDATED", "Profil berhasil diperbarui", data)


@router.post("/create-missing-profile", status_code=status.HTTP_200_OK)
async def create_missing_profile(
    auth_service: AuthService = Depends(get_auth_service),
    authorization_service: AuthorizationService = Depends(get_authorization_service),
):
    identity = await authorization_service.get_identity()
    data = await auth_service.create_missing_profile_async(identity)
    if data["created"]:
        return success("PROFILE_CREATED", "Profil berhasil dibuat", data)
    return success("PROFILE_EXISTS", "Profil sudah ada", data)
