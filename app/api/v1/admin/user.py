import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.core.enum import UserRole
from app.libs.formats.response import success
from app.schemas.admin.user import AdminCreateUser, AdminUpdateUser, InviteAdmin, UpdateUserRole
from app.services.admin.user import AdminUserService

router = APIRouter(prefix="/admin", tags=["ADMIN USER"])


@router.get("/users", status_code=status.HTTP_200_OK)
async def get_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: UserRole | None = Query(None),
    search: str | None = Query(None, description="Tìm theo tên, số điện thoại hoặc email"),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.list_users_async(admin, page, limit, role.value if role else None, search)
    return success("USERS_FETCH_SUCCESS", "Pengguna berhasil diambil", data)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    schema: AdminCreateUser = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.create_user_async(admin, schema)
    return success("USER_CREATE_SUCCESS", "Pengguna berhasil dibuat", data)


@router.get("/users/{user_id}", status_code=status.HTTP_200_OK)
async def get_user(
    user_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.get_user_async(admin, str(user_id))
    return success("USER_FETCH_SUCCESS", "Pengguna berhasil diambil", data)


@router.put("/users/{user_id}", status_code=status.HTTP_200_OK)
async def update_user(
    user_id: uuid.UUID,
    schema: AdminUpdateUser = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.update_user_async(admin, str(user_id), schema)
    return success("USER_UPDATE_SUCCESS", "Pengguna berhasil diperbarui", data)


@router.put("/users/{user_id}/role", status_code=status.HTTP_200_OK)
async def update_user_role(
    user_id: uuid.UUID,
    schema: UpdateUserRole = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.update_role_async(admin, str(user_id), schema)
    return success("USER_ROLE_UPDATED", "Role pengguna berhasil diperbarui", data)


@router.delete("/users/{user_id}", status_code=status.HTTP_200_OK)
async def delete_user(
    user_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    admin = await authorization.require_admin()
    data = await user_service.delete_user_async(admin, str(user_id))
    return success("USER_DELETE_SUCCESS", "Pengguna berhasil dihapus", data)


@router.post("/invite", status_code=status.HTTP_201_CREATED)
async def invite_admin(
    schema: InviteAdmin = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    await authorization.require_role([UserRole.SUPERADMIN.value])
    data = await user_service.invite_admin_async(schema)
    return success("ADMIN_INVITED", "Admin berhasil diundang", data)


@router.get("/quiz-results", status_code=status.HTTP_200_OK)
async def get_quiz_results(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    quiz_id: uuid.UUID | None = Query(None),
    user_id: uuid.UUID | None = Query(None),
    authorization: AuthorizationService = Depends(AuthorizationService),
    user_service: AdminUserService = Depends(AdminUserService),
):
    await authorization.require_admin()
    data = await user_service.list_quiz_results_async(
        page, limit, str(quiz_id) if quiz_id else None, str(user_id) if user_id else None
    )
    return success("QUIZ_RESULTS_FETCH_SUCCESS", "Hasil quiz berhasil diambil", data)
