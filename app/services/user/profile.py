from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, UploadFile
from loguru import logger
from supabase import PostgrestAPIError

from app.core.deps import AuthIdentity, CurrentUser
from app.core.enum import StoreErrorKind, UserRole
from app.core.errors import (
    ApiError,
    classify_store_error,
    internal_error,
    store_error_message,
)
from app.core.settings import settings
from app.db.store import StoreClients, execute_one, fetch_one, get_store
from app.libs.formats.datetime import now_iso
from app.schemas.user.profile import ChangePassword, ProfileUpdate
from app.services.shares.storage import PROFILE_PHOTO_MIME_TYPES, StorageService

PROFILE_COLUMNS = "id, full_name, phone, email, address, role, profil_url, created_at, updated_at"


class ProfileService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        storage: StorageService = Depends(StorageService),
    ):
        self.store = store
        self.storage = storage

    # ==============================
    # 🧩 GHI PROFILE (RLS fallback)
    # ==============================

    async def _write(self, build: Callable[[Any], Any], action: str) -> Dict[str, Any]:
        """
        Ghi profile bằng client của user; nếu RLS chặn thì thử lại 1 lần bằng service role.
        - Lỗi MissingColumn được ném tiếp để caller quyết định retry
        - Update trả về 0 dòng cũng coi như bị RLS chặn
        """
        try:
            row = await execute_one(build(self.store.scoped))
            if row is not None:
                return row
            reason = "0 rows returned"
        except PostgrestAPIError as e:
            if classify_store_error(e) != StoreErrorKind.PERMISSION_DENIED:
                raise
            reason = store_error_message(e)

        if not self.store.has_admin:
            logger.warning(f"⚠️ RLS chặn {action} profile và không có service role key: {reason}")
            raise ApiError(500, "PROFILE_WRITE_ERROR", f"Gagal {action} profil", {"details": reason})

        logger.warning(f"⚠️ RLS chặn {action} profile ({reason}) → thử lại bằng service role")
        try:
            row = await execute_one(build(self.store.admin))
        except PostgrestAPIError as e:
            if classify_store_error(e) == StoreErrorKind.MISSING_COLUMN:
                raise
            raise ApiError(
                500, "PROFILE_WRITE_ERROR", f"Gagal {action} profil", {"details": store_error_message(e)}
            )
        if row is None:
            raise ApiError(500, "PROFILE_WRITE_ERROR", f"Gagal {action} profil")
        return row

    async def insert_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await self._write(lambda c: c.table("profiles").insert(payload), "membuat")
        except PostgrestAPIError as e:
            if classify_store_error(e) != StoreErrorKind.MISSING_COLUMN or "role" not in payload:
                raise
            # schema cache cũ chưa có cột role → thử lại 1 lần không có role
            logger.warning(f"⚠️ Cột role chưa có trên profiles ({store_error_message(e)}) → insert lại không có role")
            without_role = {k: v for k, v in payload.items() if k != "role"}
            return await self._write(lambda c: c.table("profiles").insert(without_role), "membuat")

    async def update_profile(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._write(
            lambda c: c.table("profiles").update(payload).eq("id", user_id), "memperbarui"
        )

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await fetch_one(
            self.store.scoped.table("profiles").select(PROFILE_COLUMNS).eq("id", user_id)
        )

    async def ensure_profile(
        self,
        identity: AuthIdentity,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Tạo profile nếu trigger signup chưa tạo. Trả về (profile, created)."""
        existing = await self.get_profile(identity.id)
        if existing:
            return existing, False

        now = now_iso()
        payload = {
            "id": identity.id,
            "full_name": full_name or (identity.email or "").split("@")[0] or "User",
            "phone": phone,
            "email": identity.email,
            "address": address,
            "role": UserRole.PENGGUNA.value,
            "created_at": now,
            "updated_at": now,
        }
        profile = await self.insert_profile({k: v for k, v in payload.items() if v is not None})
        logger.info(f"✅ Đã tạo profile cho user {identity.id}")
        return profile, True

    async def upsert_own_profile_async(
        self,
        identity: AuthIdentity,
        full_name: str,
        phone: Optional[str],
        address: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        try:
            profile, created = await self.ensure_profile(identity, full_name, phone, address)
            if created:
                return profile, True

            changes = {"full_name": full_name, "updated_at": now_iso()}
            if phone is not None:
                changes["phone"] = phone
            if address is not None:
                changes["address"] = address
            return await self.update_profile(identity.id, changes), False
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e)

    # ==============================
    # 🧩 /users/me
    # ==============================

    async def get_my_profile_async(self, identity: AuthIdentity) -> Dict[str, Any]:
        try:
            profile = await self.get_profile(identity.id)
            if not profile:
                raise ApiError(404, "PROFILE_NOT_FOUND", "Profil belum dibuat")
            return {**profile, "email": profile.get("email") or identity.email}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_INTERNAL_ERROR")

    async def _sync_identity_email(self, identity: AuthIdentity, email: str) -> bool:
        if not email or email == identity.email:
            return False
        if not self.store.has_admin:
            logger.warning("⚠️ Không có service role key → chỉ cập nhật email trong profile")
            return False
        await self.store.admin.auth.admin.update_user_by_id(identity.id, {"email": email})
        return True

    async def update_my_profile_async(
        self, identity: AuthIdentity, data: ProfileUpdate
    ) -> Tuple[Dict[str, Any], bool]:
        """PUT /users/me: profile chưa có thì tạo mới (upsert-on-PUT). Không bao giờ đổi role."""
        try:
            changes = data.model_dump(exclude_unset=True, exclude_none=True)

            existing = await self.get_profile(identity.id)
            if changes.get("email"):
                await self._sync_identity_email(identity, changes["email"])

            if not existing:
                now = now_iso()
                payload = {
                    "id": identity.id,
                    "full_name": changes.get("full_name") or (identity.email or "").split("@")[0] or "User",
                    "phone": changes.get("phone", ""),
                    "email": changes.get("email") or identity.email,
                    "address": changes.get("address"),
                    "role": UserRole.PENGGUNA.value,
                    "created_at": now,
                    "updated_at": now,
                }
                created = await self.insert_profile({k: v for k, v in payload.items() if v is not None})
                return created, True

            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")

            changes["updated_at"] = now_iso()
            return await self.update_profile(identity.id, changes), False
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "USER_INTERNAL_ERROR")

    async def upload_profile_photo_async(self, user: CurrentUser, file: UploadFile) -> Dict[str, Any]:
        # 1️⃣ Kiểm tra file trước khi gọi storage
        content = await self.storage.read_validated(
            file, settings.PROFILE_PHOTO_MAX_BYTES, PROFILE_PHOTO_MIME_TYPES
        )
        bucket = settings.PROFILE_PHOTO_BUCKET
        try:
            # 2️⃣ Upload ảnh mới
            stored = await self.storage.upload(
                bucket, user.id, file.filename, content, file.content_type or "image/jpeg"
            )

            # 3️⃣ Cập nhật profile, lỗi thì dọn object vừa upload
            try:
                profile = await self.update_profile(
                    user.id, {"profil_url": stored.url, "updated_at": now_iso()}
                )
            except Exception:
                await self.storage.remove_quietly(bucket, [stored.path])
                raise

            # 4️⃣ Xoá ảnh cũ (best-effort)
            old_path = self.storage.path_from_public_url(bucket, user.profile.get("profil_url"))
            if old_path and old_path != stored.path:
                await self.storage.remove_quietly(bucket, [old_path])

            return {"id": user.id, "profil_url": profile.get("profil_url", stored.url)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROFILE_PHOTO_UPLOAD_ERROR")

    async def delete_profile_photo_async(self, user: CurrentUser) -> Dict[str, Any]:
        current_url = user.profile.get("profil_url")
        if not current_url:
            raise ApiError(404, "PROFILE_PHOTO_NOT_FOUND", "Foto profil tidak ditemukan")
        try:
            await self.update_profile(user.id, {"profil_url": None, "updated_at": now_iso()})
            bucket = settings.PROFILE_PHOTO_BUCKET
            path = self.storage.path_from_public_url(bucket, current_url)
            if path:
                await self.storage.remove_quietly(bucket, [path])
            return {"id": user.id, "profil_url": None}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROFILE_PHOTO_DELETE_ERROR")

    async def change_password_async(self, user: CurrentUser, data: ChangePassword) -> Dict[str, Any]:
        if data.current_password == data.new_password:
            raise ApiError(400, "SAME_PASSWORD", "Password baru harus berbeda")
        email = user.email or user.profile.get("email")
        if not email:
            raise ApiError(400, "EMAIL_REQUIRED", "Akun tidak memiliki email")

        session_client = await self.store.open_session()
        try:
            # 1️⃣ Xác minh mật khẩu hiện tại bằng một session riêng
            await session_client.auth.sign_in_with_password(
                {"email": email, "password": data.current_password}
            )
        except Exception as e:
            logger.info(f"🔒 Sai mật khẩu hiện tại cho user {user.id}: {e}")
            raise ApiError(401, "INVALID_CURRENT_PASSWORD", "Password saat ini salah")

        try:
            # 2️⃣ Đổi mật khẩu trên chính session đó
            await session_client.auth.update_user({"password": data.new_password})
            await session_client.auth.sign_out()
            return {"id": user.id}
        except Exception as e:
            raise ApiError(400, "PASSWORD_UPDATE_ERROR", "Gagal mengubah password", {"details": str(e)})
