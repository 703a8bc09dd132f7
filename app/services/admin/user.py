from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.deps import CurrentUser
from app.core.enum import UserRole
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.libs.formats.text import clean_search
from app.schemas.admin.user import AdminCreateUser, AdminUpdateUser, InviteAdmin, UpdateUserRole
from app.services.user.profile import PROFILE_COLUMNS


def visible_roles(caller: CurrentUser) -> list[str]:
    """Superadmin thấy admin + pengguna, admin chỉ thấy pengguna."""
    if caller.is_superadmin:
        return [UserRole.ADMIN.value, UserRole.PENGGUNA.value]
    return [UserRole.PENGGUNA.value]


def is_visible(caller: CurrentUser, profile: Dict[str, Any]) -> bool:
    if str(profile.get("id")) == caller.id:
        return False
    return (profile.get("role") or UserRole.PENGGUNA.value) in visible_roles(caller)


class AdminUserService:
    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    def _require_admin_client(self, action: str):
        if not self.store.has_admin:
            logger.warning(f"⚠️ {action} cần SUPABASE_SERVICE_ROLE_KEY")
            raise ApiError(
                500,
                "SERVICE_ROLE_REQUIRED",
                "Operasi ini membutuhkan konfigurasi service role",
            )
        return self.store.admin

    async def _get_visible(self, caller: CurrentUser, user_id: str) -> Dict[str, Any]:
        profile = await fetch_one(
            self.store.elevated.table("profiles").select(PROFILE_COLUMNS).eq("id", user_id)
        )
        # user ngoài phạm vi nhìn thấy được coi như không tồn tại
        if not profile or not is_visible(caller, profile):
            raise ApiError(404, "USER_NOT_FOUND", "Pengguna tidak ditemukan")
        return profile

    # ==============================
    # 🧩 USERS
    # ==============================

    async def list_users_async(
        self,
        caller: CurrentUser,
        page: int = 1,
        limit: int = 10,
        role: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            roles = visible_roles(caller)
            query = (
                self.store.elevated.table("profiles")
                .select(PROFILE_COLUMNS, count="exact")
                .in_("role", roles)
                .neq("id", caller.id)
                .order("created_at", desc=True)
            )
            if role:
                query = query.eq("role", role)

            term = clean_search(search)
            if term:
                query = query.or_(
                    f"full_name.ilike.%{term}%,phone.ilike.%{term}%,email.ilike.%{term}%"
                )

            start, end = page_range(page, limit)
            items, total = await fetch_page(query.range(start, end))
            return {"items": items, "pagination": paginate(total, page, limit)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_FETCH_ERROR")

    async def get_user_async(self, caller: CurrentUser, user_id: str) -> Dict[str, Any]:
        try:
            return await self._get_visible(caller, user_id)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_FETCH_ERROR")

    async def _create_account(
        self,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str],
        address: Optional[str],
        role: str,
    ) -> Dict[str, Any]:
        admin = self._require_admin_client("Tạo tài khoản")

        # 1️⃣ Tạo identity (đã xác nhận email)
        try:
            res = await admin.auth.admin.create_user(
                {
                    "email": email,
                    "password": password,
                    "email_confirm": True,
                    "user_metadata": {"full_name": full_name, "phone": phone},
                }
            )
        except Exception as e:
            raise ApiError(400, "USER_CREATE_ERROR", "Gagal membuat pengguna", {"details": str(e)})
        user = res.user

        # 2️⃣ Upsert profile, lỗi thì xoá identity vừa tạo
        now = now_iso()
        payload = {
            "id": str(user.id),
            "full_name": full_name,
            "phone": phone,
            "email": email,
            "address": address,
            "role": role,
            "created_at": now,
            "updated_at": now,
        }
        try:
            profile = await execute_one(
                admin.table("profiles").upsert(
                    {k: v for k, v in payload.items() if v is not None}, on_conflict="id"
                )
            )
        except Exception:
            logger.warning(f"⚠️ Tạo profile thất bại → xoá identity {user.id}")
            try:
                await admin.auth.admin.delete_user(str(user.id))
            except Exception as cleanup_error:
                logger.warning(f"⚠️ Không xoá được identity {user.id}: {cleanup_error}")
            raise

        logger.info(f"✅ Đã tạo tài khoản {role} {user.id}")
        return profile or payload

    async def create_user_async(self, caller: CurrentUser, schema: AdminCreateUser) -> Dict[str, Any]:
        try:
            if schema.role == UserRole.ADMIN.value and not caller.is_superadmin:
                raise ApiError(403, "FORBIDDEN", "Hanya superadmin yang dapat membuat admin")
            return await self._create_account(
                schema.email, schema.password, schema.full_name, schema.phone, schema.address, schema.role
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_CREATE_ERROR")

    async def invite_admin_async(self, schema: InviteAdmin) -> Dict[str, Any]:
        try:
            # role luôn là admin, không lấy từ payload
            return await self._create_account(
                schema.email, schema.password, schema.full_name, schema.phone, None, UserRole.ADMIN.value
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "ADMIN_INVITE_ERROR")

    async def update_user_async(
        self, caller: CurrentUser, user_id: str, schema: AdminUpdateUser
    ) -> Dict[str, Any]:
        try:
            await self._get_visible(caller, user_id)
            changes = schema.model_dump(exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            changes["updated_at"] = now_iso()
            return await execute_one(
                self.store.elevated.table("profiles").update(changes).eq("id", user_id)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_UPDATE_ERROR")

    async def update_role_async(
        self, caller: CurrentUser, user_id: str, schema: UpdateUserRole
    ) -> Dict[str, Any]:
        try:
            if user_id == caller.id:
                raise ApiError(400, "INVALID_OPERATION", "Tidak dapat mengubah role sendiri")

            target = await self._get_visible(caller, user_id)
            touches_admin = UserRole.ADMIN.value in (target.get("role"), schema.role)
            if touches_admin and not caller.is_superadmin:
                raise ApiError(403, "FORBIDDEN", "Hanya superadmin yang dapat mengubah role admin")

            return await execute_one(
                self.store.elevated.table("profiles")
                .update({"role": schema.role, "updated_at": now_iso()})
                .eq("id", user_id)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_UPDATE_ERROR")

    async def delete_user_async(self, caller: CurrentUser, user_id: str) -> Dict[str, Any]:
        try:
            if user_id == caller.id:
                raise ApiError(400, "INVALID_OPERATION", "Tidak dapat menghapus akun sendiri")
            profile = await self._get_visible(caller, user_id)
            admin = self._require_admin_client("Xoá tài khoản")

            # profile bị xoá theo cascade khi xoá identity
            await admin.auth.admin.delete_user(user_id)
            return {"id": user_id, "full_name": profile.get("full_name")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_DELETE_ERROR")

    # ==============================
    # 🧩 QUIZ RESULTS
    # ==============================

    async def list_quiz_results_async(
        self,
        page: int = 1,
        limit: int = 10,
        quiz_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            query = (
                client.table("user_quiz_attempts")
                .select("id, user_id, quiz_id, score, is_passed, started_at, completed_at", count="exact")
                .not_.is_("completed_at", "null")
                .order("completed_at", desc=True)
            )
            if quiz_id:
                query = query.eq("quiz_id", quiz_id)
            if user_id:
                query = query.eq("user_id", user_id)

            start, end = page_range(page, limit)
            attempts, total = await fetch_page(query.range(start, end))

            user_ids = list({str(a["user_id"]) for a in attempts})
            quiz_ids = list({str(a["quiz_id"]) for a in attempts})
            profiles = (
                await fetch_all(client.table("profiles").select("id, full_name").in_("id", user_ids))
                if user_ids
                else []
            )
            quizzes = (
                await fetch_all(client.table("materis_quizzes").select("id, title").in_("id", quiz_ids))
                if quiz_ids
                else []
            )
            names = {str(p["id"]): p for p in profiles}
            titles = {str(q["id"]): q for q in quizzes}

            items = [
                {**a, "user": names.get(str(a["user_id"])), "quiz": titles.get(str(a["quiz_id"]))}
                for a in attempts
            ]
            return {"items": items, "pagination": paginate(total, page, limit)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_RESULTS_FETCH_ERROR")
