# app/db/store.py
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from fastapi import Depends, Request
from loguru import logger
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from app.core.security import SecurityService
from app.core.settings import settings


def _client_options(headers: Optional[Dict[str, str]] = None) -> AsyncClientOptions:
    # Server không giữ session: không auto refresh, không persist
    return AsyncClientOptions(
        headers=headers or {},
        auto_refresh_token=False,
        persist_session=False,
    )


async def close_client(client: Any) -> None:
    """
    Đóng các httpx session mà supabase-py đã mở cho client.
    Sub-client được tạo lazily nên chỉ đóng những gì đã tồn tại.
    """
    sessions = [getattr(client, name, None) for name in ("_postgrest", "_storage", "_functions")]
    sessions.append(getattr(getattr(client, "_auth", None), "_http_client", None))
    for session in sessions:
        closer = getattr(session, "aclose", None)
        if closer is None:
            continue
        try:
            await closer()
        except Exception as e:
            logger.warning(f"⚠️ Không đóng được kết nối Supabase: {e}")


class StoreFactory:
    """
    Giữ 2 client dùng chung trong vòng đời app (anon + service role)
    và tạo client theo user cho từng request.
    Được tạo trong lifespan và gắn vào app.state.store.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        anon: AsyncClient,
        admin: Optional[AsyncClient] = None,
    ):
        self.url = url
        self.anon_key = anon_key
        self.anon = anon
        self.admin = admin

    @classmethod
    async def create(cls) -> "StoreFactory":
        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise RuntimeError("SUPABASE_URL và SUPABASE_ANON_KEY là bắt buộc")

        anon = await acreate_client(
            settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, options=_client_options()
        )

        admin = None
        if settings.SUPABASE_SERVICE_ROLE_KEY:
            admin = await acreate_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_SERVICE_ROLE_KEY,
                options=_client_options(),
            )
            logger.info("🔑 Supabase service-role client sẵn sàng")
        else:
            logger.warning(
                "⚠️ SUPABASE_SERVICE_ROLE_KEY chưa cấu hình → các thao tác admin sẽ chạy bằng client của user"
            )

        return cls(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, anon, admin)

    async def for_user(self, token: str) -> AsyncClient:
        """Client mang JWT của user → RLS đánh giá theo đúng user."""
        return await acreate_client(
            self.url,
            self.anon_key,
            options=_client_options({"Authorization": f"Bearer {token}"}),
        )

    async def open_session(self) -> AsyncClient:
        """Client mới cho các lệnh sign-in/sign-up/refresh (tránh ghi session vào client dùng chung)."""
        return await acreate_client(self.url, self.anon_key, options=_client_options())

    async def aclose(self) -> None:
        """Đóng kết nối HTTP của client dùng chung (gọi khi app shutdown)."""
        await close_client(self.anon)
        if self.admin is not None:
            await close_client(self.admin)


@dataclass
class StoreClients:
    """Bộ client theo request: anon, user-scoped, admin (service role)."""

    anon: Any
    open_session: Callable[[], Awaitable[Any]]
    user: Any = None
    admin: Any = None
    token: Optional[str] = None

    @property
    def scoped(self) -> Any:
        """Client theo user nếu đã đăng nhập, ngược lại là anon."""
        return self.user or self.anon

    @property
    def elevated(self) -> Any:
        """Client quyền cao nhất hiện có, chỉ dùng cho thao tác admin."""
        return self.admin or self.scoped

    @property
    def has_admin(self) -> bool:
        return self.admin is not None


def get_store_factory(request: Request) -> StoreFactory:
    return request.app.state.store


async def get_store(
    request: Request,
    factory: StoreFactory = Depends(get_store_factory),
) -> AsyncIterator[StoreClients]:
    token = SecurityService.extract_bearer(request.headers.get("authorization"))
    opened: List[Any] = []

    async def open_session() -> Any:
        client = await factory.open_session()
        opened.append(client)
        return client

    user_client = await factory.for_user(token) if token else None
    if user_client is not None:
        opened.append(user_client)

    try:
        yield StoreClients(
            anon=factory.anon,
            open_session=open_session,
            user=user_client,
            admin=factory.admin,
            token=token,
        )
    finally:
        # Client theo request phải được đóng sau khi response xong
        for client in opened:
            await close_client(client)


# ==============================
# 🧩 QUERY HELPERS
# ==============================


async def fetch_all(query) -> List[Dict[str, Any]]:
    res = await query.execute()
    return list(res.data or [])


async def fetch_one(query) -> Optional[Dict[str, Any]]:
    """Lấy 1 dòng hoặc None (không dùng .single() để tránh lỗi PGRST116)."""
    res = await query.limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None


async def fetch_page(query):
    """Trả về (rows, count) cho query đã gắn count="exact" và .range()."""
    res = await query.execute()
    return list(res.data or []), int(res.count or 0)


async def count_rows(query) -> int:
    res = await query.limit(1).execute()
    return int(res.count or 0)


async def execute_one(query) -> Optional[Dict[str, Any]]:
    """Chạy insert/update/upsert/delete và trả về dòng đầu tiên được trả về."""
    res = await query.execute()
    rows = res.data or []
    return rows[0] if rows else None
