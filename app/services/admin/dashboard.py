import asyncio
from datetime import timedelta
from typing import Any, Dict, List

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.enum import UserRole
from app.core.errors import internal_error
from app.db.store import StoreClients, count_rows, fetch_all, get_store
from app.libs.formats.datetime import now, now_iso, parse, relative_time, start_of_day


def _module_completion_stats(
    progress_rows: List[Dict[str, Any]], titles: Dict[str, str]
) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    for row in progress_rows:
        module_id = str(row.get("module_id"))
        stat = stats.setdefault(
            module_id,
            {"users": set(), "completed": 0, "total_progress": 0.0, "count": 0},
        )
        stat["users"].add(row.get("user_id"))
        if row.get("is_completed"):
            stat["completed"] += 1
        stat["total_progress"] += float(row.get("progress_percentage") or 0)
        stat["count"] += 1

    result = []
    for module_id, stat in stats.items():
        started = len(stat["users"])
        result.append(
            {
                "module_id": module_id,
                "module_title": titles.get(module_id, f"Module {module_id}"),
                "total_users_started": started,
                "total_users_completed": stat["completed"],
                "completion_rate": round(stat["completed"] / started * 100) if started else 0,
                "average_progress": round(stat["total_progress"] / stat["count"]) if stat["count"] else 0,
            }
        )
    return sorted(result, key=lambda s: s["total_users_started"], reverse=True)


class DashboardService:
    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    async def get_stats_async(self) -> Dict[str, Any]:
        """Thống kê tổng hợp cho dashboard admin (các query chạy song song)."""
        try:
            client = self.store.elevated
            (
                users,
                total_modules,
                total_materials,
                total_quizzes,
                attempts,
                module_progress,
                modules,
                recent,
            ) = await asyncio.gather(
                fetch_all(client.table("profiles").select("id, role, created_at")),
                count_rows(client.table("modules").select("id", count="exact")),
                count_rows(client.table("sub_materis").select("id", count="exact")),
                count_rows(client.table("materis_quizzes").select("id", count="exact")),
                fetch_all(
                    client.table("user_quiz_attempts").select("id, user_id, started_at, completed_at, is_passed")
                ),
                fetch_all(
                    client.table("user_module_progress").select(
                        "user_id, module_id, is_completed, progress_percentage"
                    )
                ),
                fetch_all(client.table("modules").select("id, title")),
                fetch_all(
                    client.table("user_quiz_attempts")
                    .select("id, user_id, quiz_id, score, is_passed, completed_at")
                    .not_.is_("completed_at", "null")
                    .order("completed_at", desc=True)
                    .limit(10)
                ),
            )

            # 1️⃣ Users
            today = start_of_day()
            week_ago = now() - timedelta(days=7)
            active_today = {
                a.get("user_id")
                for a in attempts
                if (parse(a.get("started_at")) or week_ago) >= today
            }
            new_this_week = sum(1 for u in users if (parse(u.get("created_at")) or week_ago) > week_ago)

            # 2️⃣ Quiz attempts
            completed = [a for a in attempts if a.get("completed_at")]
            passed = [a for a in completed if a.get("is_passed")]

            # 3️⃣ Hoạt động gần đây
            names: Dict[str, str] = {}
            quiz_titles: Dict[str, str] = {}
            if recent:
                user_ids = list({str(a["user_id"]) for a in recent})
                quiz_ids = list({str(a["quiz_id"]) for a in recent})
                profiles, quizzes = await asyncio.gather(
                    fetch_all(client.table("profiles").select("id, full_name").in_("id", user_ids)),
                    fetch_all(client.table("materis_quizzes").select("id, title").in_("id", quiz_ids)),
                )
                names = {str(p["id"]): p.get("full_name") for p in profiles}
                quiz_titles = {str(q["id"]): q.get("title") for q in quizzes}

            recent_activities = [
                {
                    "id": a["id"],
                    "user": names.get(str(a["user_id"])) or "Pengguna",
                    "action": "Menyelesaikan Kuis" if a.get("is_passed") else "Mengikuti Kuis",
                    "category": quiz_titles.get(str(a["quiz_id"])) or "Kuis",
                    "score": a.get("score"),
                    "passed": bool(a.get("is_passed")),
                    "time": a.get("completed_at"),
                    "relative_time": relative_time(a.get("completed_at")),
                }
                for a in recent
            ]

            stats = {
                "total_users": len(users),
                "regular_users": sum(1 for u in users if u.get("role") == UserRole.PENGGUNA.value),
                "admin_users": sum(1 for u in users if u.get("role") == UserRole.ADMIN.value),
                "active_users_today": len(active_today),
                "new_users_this_week": new_this_week,
                "total_modules": total_modules,
                "total_materials": total_materials,
                "total_quizzes": total_quizzes,
                "completed_quizzes_total": len(completed),
                "passed_quizzes_total": len(passed),
                "average_completion_rate": round(len(passed) / len(completed) * 100) if completed else 0,
                "module_completion_stats": _module_completion_stats(
                    module_progress, {str(m["id"]): m.get("title") for m in modules}
                ),
                "recent_activities": recent_activities,
                "last_updated": now_iso(),
            }
            logger.debug(f"📊 Dashboard stats: {stats['total_users']} users, {stats['total_modules']} modules")
            return stats
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "DASHBOARD_STATS_ERROR")
