from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, get_store
from app.libs.formats.datetime import now_iso
from app.schemas.user.progress import SubmitModuleProgress


def _zero_module_progress(user_id: str, module_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "module_id": module_id,
        "completed_sub_materis": 0,
        "progress_percentage": 0,
        "is_completed": False,
        "updated_at": None,
    }


def _zero_sub_materi_progress() -> Dict[str, Any]:
    return {"is_completed": False, "progress_percentage": 0, "completed_at": None}


class ProgressService:
    """
    Sổ tiến độ học (poin → sub-materi → module) và cổng truy cập tuần tự.
    - Mọi thao tác ghi là upsert theo khoá tự nhiên (user_id, content_id)
    - Chạy bằng client của user → RLS chỉ cho ghi tiến độ của chính mình
    """

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    @property
    def client(self):
        return self.store.scoped

    # ==============================
    # 🧩 LEDGER
    # ==============================

    async def complete_poin(
        self, user_id: str, module_id: str, sub_materi_id: str, poin_id: str
    ) -> Dict[str, Any]:
        # ON CONFLICT DO NOTHING: lần hoàn thành đầu tiên giữ completed_at
        now = now_iso()
        row = await execute_one(
            self.client.table("user_poin_progress").upsert(
                {
                    "user_id": user_id,
                    "poin_id": poin_id,
                    "sub_materi_id": sub_materi_id,
                    "module_id": module_id,
                    "is_completed": True,
                    "completed_at": now,
                    "updated_at": now,
                },
                on_conflict="user_id,poin_id",
                ignore_duplicates=True,
            )
        )
        if row:
            return {**row, "already_completed": False}

        existing = await fetch_one(
            self.client.table("user_poin_progress")
            .select("*")
            .eq("user_id", user_id)
            .eq("poin_id", poin_id)
        )
        if existing and not existing.get("is_completed"):
            # Dòng cũ chưa hoàn thành: chỉ cập nhật khi vẫn còn is_completed = false
            updated = await execute_one(
                self.client.table("user_poin_progress")
                .update({"is_completed": True, "completed_at": now, "updated_at": now})
                .eq("id", existing["id"])
                .eq("is_completed", False)
            )
            if updated:
                return {**updated, "already_completed": False}
            existing = await fetch_one(
                self.client.table("user_poin_progress").select("*").eq("id", existing["id"])
            )
        return {**(existing or {}), "already_completed": True}

    async def record_sub_materi_progress(
        self,
        user_id: str,
        module_id: str,
        sub_materi_id: str,
        is_completed: bool,
        progress_percentage: float,
    ) -> Optional[Dict[str, Any]]:
        now = now_iso()
        return await execute_one(
            self.client.table("user_sub_materi_progress").upsert(
                {
                    "user_id": user_id,
                    "sub_materi_id": sub_materi_id,
                    "module_id": module_id,
                    "is_completed": is_completed,
                    "progress_percentage": progress_percentage,
                    "completed_at": now if is_completed else None,
                    "updated_at": now,
                },
                on_conflict="user_id,sub_materi_id",
            )
        )

    async def recompute_module_rollup(self, user_id: str, module_id: str) -> Optional[Dict[str, Any]]:
        """Đếm sub-materi đã xong rồi upsert module (chỉ chạm updated_at + completed_sub_materis)."""
        res = await (
            self.client.table("user_sub_materi_progress")
            .select("sub_materi_id", count="exact")
            .eq("user_id", user_id)
            .eq("module_id", module_id)
            .eq("is_completed", True)
            .execute()
        )
        completed = int(res.count if res.count is not None else len(res.data or []))

        return await execute_one(
            self.client.table("user_module_progress").upsert(
                {
                    "user_id": user_id,
                    "module_id": module_id,
                    "completed_sub_materis": completed,
                    "updated_at": now_iso(),
                },
                on_conflict="user_id,module_id",
            )
        )

    async def complete_sub_materi(self, user_id: str, module_id: str, sub_materi_id: str) -> Dict[str, Any]:
        progress = await self.record_sub_materi_progress(user_id, module_id, sub_materi_id, True, 100)
        module_progress = await self.recompute_module_rollup(user_id, module_id)
        return {"sub_materi_progress": progress, "module_progress": module_progress}

    # ==============================
    # 🧩 API
    # ==============================

    async def complete_poin_async(
        self, user: CurrentUser, sub_materi_id: str, poin_id: str, module_id: str
    ) -> Dict[str, Any]:
        try:
            return await self.complete_poin(user.id, module_id, sub_materi_id, poin_id)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_UPDATE_ERROR")

    async def complete_sub_materi_async(
        self, user: CurrentUser, sub_materi_id: str, module_id: str
    ) -> Dict[str, Any]:
        try:
            return await self.complete_sub_materi(user.id, module_id, sub_materi_id)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_UPDATE_ERROR")

    async def get_sub_materi_progress_async(self, user: CurrentUser, sub_materi_id: str) -> Dict[str, Any]:
        try:
            sub_materi = await fetch_one(
                self.client.table("sub_materis")
                .select("id, module_id, title, order_index, published")
                .eq("id", sub_materi_id)
            )
            if not sub_materi:
                raise ApiError(404, "SUB_MATERI_NOT_FOUND", "Sub materi tidak ditemukan")

            progress = await fetch_one(
                self.client.table("user_sub_materi_progress")
                .select("*")
                .eq("user_id", user.id)
                .eq("sub_materi_id", sub_materi_id)
            )

            poins = await fetch_all(
                self.client.table("poin_details")
                .select("id, title, order_index")
                .eq("sub_materi_id", sub_materi_id)
                .order("order_index")
            )
            done: Dict[str, Dict[str, Any]] = {}
            if poins:
                rows = await fetch_all(
                    self.client.table("user_poin_progress")
                    .select("poin_id, is_completed, completed_at")
                    .eq("user_id", user.id)
                    .in_("poin_id", [p["id"] for p in poins])
                )
                done = {str(r["poin_id"]): r for r in rows}

            poins_with_progress = [
                {
                    **p,
                    "is_completed": bool(done.get(str(p["id"]), {}).get("is_completed")),
                    "completed_at": done.get(str(p["id"]), {}).get("completed_at"),
                }
                for p in poins
            ]
            return {
                "sub_materi": sub_materi,
                "progress": progress or _zero_sub_materi_progress(),
                "poins": poins_with_progress,
                "completed_poins": sum(1 for p in poins_with_progress if p["is_completed"]),
                "total_poins": len(poins_with_progress),
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_FETCH_ERROR")

    async def get_module_progress_async(self, user: CurrentUser, module_id: str) -> Dict[str, Any]:
        try:
            module_progress = await fetch_one(
                self.client.table("user_module_progress")
                .select("*")
                .eq("user_id", user.id)
                .eq("module_id", module_id)
            )
            sub_materis = await fetch_all(
                self.client.table("user_sub_materi_progress")
                .select("*")
                .eq("user_id", user.id)
                .eq("module_id", module_id)
            )
            poins = await fetch_all(
                self.client.table("user_poin_progress")
                .select("*")
                .eq("user_id", user.id)
                .eq("module_id", module_id)
            )
            return {
                "module_progress": module_progress or _zero_module_progress(user.id, module_id),
                "sub_materis_progress": sub_materis,
                "poins_progress": poins,
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_FETCH_ERROR")

    async def get_user_modules_progress_async(self, user: CurrentUser) -> List[Dict[str, Any]]:
        try:
            return await fetch_all(
                self.client.table("user_module_progress")
                .select("*")
                .eq("user_id", user.id)
                .order("updated_at", desc=True)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_FETCH_ERROR")

    async def submit_module_progress_async(
        self, user: CurrentUser, module_id: str, schema: SubmitModuleProgress
    ) -> Dict[str, Any]:
        """Client tự gửi phần trăm / trạng thái hoàn thành của module (server không tự tính)."""
        try:
            is_completed = (
                schema.is_completed
                if schema.is_completed is not None
                else schema.progress_percentage >= 100
            )
            return await execute_one(
                self.client.table("user_module_progress").upsert(
                    {
                        "user_id": user.id,
                        "module_id": module_id,
                        "progress_percentage": schema.progress_percentage,
                        "is_completed": is_completed,
                        "updated_at": now_iso(),
                    },
                    on_conflict="user_id,module_id",
                )
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "PROGRESS_UPDATE_ERROR")

    # ==============================
    # 🧩 ACCESS GATE
    # ==============================

    async def can_access_sub_materi(self, user_id: str, sub_materi_id: str) -> Dict[str, Any]:
        # 1️⃣ Sub-materi đích phải tồn tại và đã publish
        target = await fetch_one(
            self.client.table("sub_materis")
            .select("id, module_id, order_index, published")
            .eq("id", sub_materi_id)
        )
        if not target or not target.get("published"):
            raise ApiError(404, "SUB_MATERI_NOT_FOUND", "Sub materi tidak ditemukan")

        # 2️⃣ Các sub-materi đứng trước (order_index nhỏ hơn hẳn)
        priors = await fetch_all(
            self.client.table("sub_materis")
            .select("id")
            .eq("module_id", target["module_id"])
            .eq("published", True)
            .lt("order_index", target.get("order_index") or 0)
        )
        if not priors:
            return {"can_access": True, "reason": None}

        # 3️⃣ Đếm số đã hoàn thành
        prior_ids = [str(p["id"]) for p in priors]
        done = await fetch_all(
            self.client.table("user_sub_materi_progress")
            .select("sub_materi_id")
            .eq("user_id", user_id)
            .eq("is_completed", True)
            .in_("sub_materi_id", prior_ids)
        )
        completed = len({str(r["sub_materi_id"]) for r in done})
        remaining = len(prior_ids) - completed
        if remaining <= 0:
            return {"can_access": True, "reason": None}

        logger.debug(f"🔒 User {user_id} chưa mở được sub-materi {sub_materi_id}: còn {remaining}")
        return {"can_access": False, "reason": f"Selesaikan {remaining} materi sebelumnya..."}

    async def can_access_sub_materi_async(self, user: CurrentUser, sub_materi_id: str) -> Dict[str, Any]:
        try:
            return await self.can_access_sub_materi(user.id, sub_materi_id)
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "ACCESS_CHECK_ERROR")
