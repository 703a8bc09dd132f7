from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.deps import AuthIdentity
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, fetch_one, get_store
from app.libs.formats.text import normalize_phone
from app.schemas.auth.user import LoginUser, ProfileUpsert, RegisterUser
from app.services.user.profile import PROFILE_COLUMNS, ProfileService


def _session_payload(session: Any) -> Dict[str, Any]:
    return {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "expires_at": getattr(session, "expires_at", None),
        "expires_in": getattr(session, "expires_in", None),
        "token_type": getattr(session, "token_type", "bearer"),
    }


class AuthService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        profile_service: ProfileService = Depends(ProfileService),
    ):
        self.store = store
        self.profile_service = profile_service

    def _profiles_as(self, client: Any, token: Optional[str]) -> ProfileService:
        """ProfileService chạy bằng session vừa đăng nhập (RLS tính theo user mới)."""
        return ProfileService(
            store=replace(self.store, user=client, token=token),
            storage=self.profile_service.storage,
        )

    async def register_async(self, schema: RegisterUser) -> Dict[str, Any]:
        session_client = await self.store.open_session()

        # 1️⃣ TẠO IDENTITY
        try:
            res = await session_client.auth.sign_up(
                {
                    "email": schema.email,
                    "password": schema.password,
                    "options": {"data": {"full_name": schema.full_name, "phone": schema.phone}},
                }
            )
        except Exception as e:
            logger.info(f"🔒 Đăng ký thất bại cho {schema.email}: {e}")
            raise ApiError(400, "REGISTER_ERROR", "Gagal mendaftarkan pengguna", {"details": str(e)})

        user = getattr(res, "user", None)
        session = getattr(res, "session", None)
        if not user:
            raise ApiError(500, "UNEXPECTED_STATE", "Unexpected registration state")

        # 2️⃣ CHƯA CÓ SESSION (bật xác nhận email)
        if not session:
            return {
                "user_id": str(user.id),
                "email": user.email,
                "requires_confirmation": True,
            }

        # 3️⃣ TẠO PROFILE (lỗi không làm hỏng đăng ký)
        identity = AuthIdentity(id=str(user.id), email=user.email, token=session.access_token)
        profile = None
        try:
            profiles = self._profiles_as(session_client, session.access_token)
            profile, _ = await profiles.ensure_profile(
                identity, schema.full_name, schema.phone, schema.address
            )
        except Exception as e:
            logger.warning(f"⚠️ Tạo profile khi đăng ký thất bại cho {user.id}: {e}")

        return {
            **_session_payload(session),
            "user": {"id": str(user.id), "email": user.email, "profile": profile},
        }

    async def _resolve_email(self, login_id: str) -> Optional[str]:
        if "@" in login_id:
            return login_id.lower()

        phone = normalize_phone(login_id)
        candidates = list({phone, "+62" + phone[1:], "62" + phone[1:]}) if phone.startswith("0") else [phone]
        if not self.store.has_admin:
            logger.warning("⚠️ Đăng nhập bằng số điện thoại không có service role key → tra cứu bằng anon client")
        profile = await fetch_one(
            self.store.elevated.table("profiles").select("id, email").in_("phone", candidates)
        )
        return (profile or {}).get("email")

    async def login_async(self, schema: LoginUser) -> Dict[str, Any]:
        try:
            # 1️⃣ EMAIL HOẶC SỐ ĐIỆN THOẠI
            email = await self._resolve_email(schema.login_id)
            if not email:
                raise ApiError(401, "INVALID_CREDENTIALS", "Email/nomor telepon atau password salah")

            # 2️⃣ ĐĂNG NHẬP
            session_client = await self.store.open_session()
            try:
                res = await session_client.auth.sign_in_with_password(
                    {"email": email, "password": schema.password}
                )
            except Exception as e:
                if getattr(e, "code", None) == "email_not_confirmed":
                    raise ApiError(403, "EMAIL_NOT_CONFIRMED", "Email belum dikonfirmasi")
                logger.info(f"🔒 Đăng nhập thất bại cho {email}: {e}")
                raise ApiError(401, "INVALID_CREDENTIALS", "Email/nomor telepon atau password salah")

            user, session = res.user, res.session
            if not user or not session:
                raise ApiError(401, "INVALID_CREDENTIALS", "Email/nomor telepon atau password salah")

            # 3️⃣ PROFILE
            profile = await fetch_one(
                session_client.table("profiles").select(PROFILE_COLUMNS).eq("id", str(user.id))
            )

            return {
                **_session_payload(session),
                "user": {
                    "id": str(user.id),
                    "email": user.email,
                    "role": (profile or {}).get("role"),
                    "profile": profile,
                },
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e)

    async def refresh_async(self, refresh_token: str) -> Dict[str, Any]:
        session_client = await self.store.open_session()
        try:
            res = await session_client.auth.refresh_session(refresh_token)
        except Exception as e:
            logger.info(f"🔒 Refresh token không hợp lệ: {e}")
            raise ApiError(401, "INVALID_REFRESH_TOKEN", "Refresh token tidak valid atau kedaluwarsa")

        session = getattr(res, "session", None)
        if not session:
            raise ApiError(401, "INVALID_REFRESH_TOKEN", "Refresh token tidak valid atau kedaluwarsa")

        user = getattr(res, "user", None)
        return {
            **_session_payload(session),
            "user": {"id": str(user.id), "email": user.email} if user else None,
        }

    async def logout_async(self) -> Dict[str, Any]:
        token = self.store.token
        if not token:
            return {"revoked": False}
        if not self.store.has_admin:
            logger.info("ℹ️ Logout không có service role key → token hết hạn tự nhiên")
            return {"revoked": False}
        try:
            await self.store.admin.auth.admin.sign_out(token)
            return {"revoked": True}
        except Exception as e:
            logger.warning(f"⚠️ Không thu hồi được session khi logout: {e}")
            return {"revoked": False}

    async def create_or_update_profile_async(
        self, identity: AuthIdentity, schema: ProfileUpsert
    ) -> Dict[str, Any]:
        profile, created = await self.profile_service.upsert_own_profile_async(
            identity, schema.full_name, schema.phone, schema.address
        )
        return {
            "created": created,
            "user": {"id": identity.id, "email": identity.email, "profile": profile},
        }

    async def create_missing_profile_async(self, identity: AuthIdentity) -> Dict[str, Any]:
        try:
            profile, created = await self.profile_service.ensure_profile(identity)
            return {"created": created, "profile": profile}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e)
