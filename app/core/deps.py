# app/core/deps.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.context import get_request
from app.core.enum import ADMIN_ROLES, UserRole
from app.core.errors import ApiError
from app.core.security import SecurityService
from app.db.store import StoreClients, fetch_one, get_store


@dataclass
class AuthIdentity:
    """User đã xác thực token (có thể chưa có profile)."""

    id: str
    email: Optional[str]
    token: str


@dataclass
class CurrentUser(AuthIdentity):
    role: str = UserRole.PENGGUNA.value
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN.value


class AuthorizationService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        security: SecurityService = Depends(SecurityService),
    ):
        self.store = store
        self.security = security

    # ==============================
    # 🧩 CORE AUTH CHECKS
    # ==============================

    def _read_token(self) -> Optional[str]:
        if self.store.token:
            return self.store.token
        request = get_request()
        return self.security.extract_bearer(request.headers.get("authorization"))

    async def _verify_token(self, token: str) -> AuthIdentity:
        if self.security.can_verify_locally:
            payload = await self.security.decode_access_token(token)
            user_id = payload.get("sub")
            if not user_id:
                raise ValueError("Invalid token")
            return AuthIdentity(id=str(user_id), email=payload.get("email"), token=token)

        res = await self.store.anon.auth.get_user(token)
        user = getattr(res, "user", None)
        if not user:
            raise ValueError("Invalid token")
        return AuthIdentity(id=str(user.id), email=getattr(user, "email", None), token=token)

    async def get_identity(self) -> AuthIdentity:
        """Xác thực Bearer token, không yêu cầu profile."""
        token = self._read_token()
        if not token:
            raise ApiError(401, "UNAUTHORIZED", "Authorization header missing or invalid")

        try:
            return await self._verify_token(token)
        except Exception as e:
            logger.info(f"🔒 Token verification failed: {e}")
            raise ApiError(401, "UNAUTHORIZED", "Invalid or expired token")

    async def _load_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await fetch_one(
                self.store.scoped.table("profiles").select("*").eq("id", user_id)
            )
        except Exception as e:
            raise ApiError(
                500, "PROFILE_FETCH_ERROR", "Failed to fetch user profile", {"details": str(e)}
            )

    async def get_current_user(self) -> CurrentUser:
        """User hiện tại + profile (bắt buộc phải có profile)."""
        identity = await self.get_identity()
        profile = await self._load_profile(identity.id)
        if not profile:
            raise ApiError(
                404,
                "PROFILE_NOT_FOUND",
                "User profile not found. Please complete your profile first.",
            )

        return CurrentUser(
            id=identity.id,
            email=identity.email or profile.get("email"),
            token=identity.token,
            role=profile.get("role") or UserRole.PENGGUNA.value,
            profile=profile,
        )

    async def get_current_user_if_any(self) -> Optional[CurrentUser]:
        """Lấy user nếu có (chưa login hoặc token lỗi thì trả None)."""
        if not self._read_token():
            return None
        try:
            return await self.get_current_user()
        except HTTPException:
            return None

    # ==============================
    # 🧩 ROLE-BASED ACCESS CONTROL
    # ==============================

    async def require_role(self, required_roles: Optional[List[str]] = None) -> CurrentUser:
        """Yêu cầu user có quyền cụ thể (vd: admin)."""
        current_user = await self.get_current_user()

        if not required_roles:
            return current_user

        if current_user.role not in required_roles:
            raise ApiError(
                403,
                "FORBIDDEN",
                f"Access denied. Required role: {', '.join(required_roles)}",
            )

        return current_user

    async def require_admin(self) -> CurrentUser:
        return await self.require_role(ADMIN_ROLES)
