from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.deps import CurrentUser
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.schemas.admin.quiz import CreateQuestion, CreateQuiz, UpdateQuestion, UpdateQuiz
from app.services.shares.poin import is_admin_caller, load_visible_sub_materi

QUIZ_COLUMNS = (
    "id, sub_materi_id, module_id, title, description, passing_score, "
    "time_limit_seconds, published, created_at, updated_at"
)
QUESTION_PUBLIC_COLUMNS = "id, quiz_id, question_text, options, order_index"
QUESTION_ADMIN_COLUMNS = "id, quiz_id, question_text, options, correct_answer_index, explanation, order_index"


class QuizService:
    """Đọc quiz (public/optional auth) + CRUD quiz & câu hỏi cho admin."""

    def __init__(self, store: StoreClients = Depends(get_store)):
        self.store = store

    def _reader(self, user: Optional[CurrentUser]):
        return self.store.elevated if is_admin_caller(user) else self.store.scoped

    async def _user_status(self, user: Optional[CurrentUser], quiz_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Kết quả attempt hoàn thành gần nhất của user cho từng quiz."""
        if user is None or not quiz_ids:
            return {}
        attempts = await fetch_all(
            self.store.scoped.table("user_quiz_attempts")
            .select("quiz_id, score, is_passed, completed_at")
            .eq("user_id", user.id)
            .in_("quiz_id", quiz_ids)
            .not_.is_("completed_at", "null")
            .order("completed_at", desc=True)
        )
        latest: Dict[str, Dict[str, Any]] = {}
        for attempt in attempts:
            latest.setdefault(str(attempt["quiz_id"]), attempt)
        return {
            qid: {
                "is_completed": True,
                "score": a.get("score"),
                "is_passed": bool(a.get("is_passed")),
                "completed_at": a.get("completed_at"),
            }
            for qid, a in latest.items()
        }

    async def _with_status(self, user: Optional[CurrentUser], quizzes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if user is None:
            return quizzes
        status = await self._user_status(user, [str(q["id"]) for q in quizzes])
        empty = {"is_completed": False, "score": None, "is_passed": False, "completed_at": None}
        return [{**q, "user_status": status.get(str(q["id"]), dict(empty))} for q in quizzes]

    async def _questions(self, client: Any, quiz_id: str, user: Optional[CurrentUser]) -> List[Dict[str, Any]]:
        # user thường không được thấy đáp án đúng
        columns = QUESTION_ADMIN_COLUMNS if is_admin_caller(user) else QUESTION_PUBLIC_COLUMNS
        return await fetch_all(
            client.table("materis_quiz_questions").select(columns).eq("quiz_id", quiz_id).order("order_index")
        )

    async def _require_quiz(self, quiz_id: str) -> Dict[str, Any]:
        quiz = await fetch_one(self.store.elevated.table("materis_quizzes").select(QUIZ_COLUMNS).eq("id", quiz_id))
        if not quiz:
            raise ApiError(404, "QUIZ_NOT_FOUND", "Quiz tidak ditemukan")
        return quiz

    # ==============================
    # 🧩 ĐỌC
    # ==============================

    async def list_quizzes_async(
        self,
        user: Optional[CurrentUser],
        module_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        try:
            query = (
                self._reader(user)
                .table("materis_quizzes")
                .select(QUIZ_COLUMNS, count="exact")
                .order("created_at", desc=True)
            )
            if not is_admin_caller(user):
                query = query.eq("published", True)
            if module_id:
                query = query.eq("module_id", module_id)

            start, end = page_range(page, limit)
            quizzes, total = await fetch_page(query.range(start, end))
            return {
                "items": await self._with_status(user, quizzes),
                "pagination": paginate(total, page, limit),
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZZES_FETCH_ERROR")

    async def list_by_module_async(self, module_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        try:
            query = (
                self._reader(user)
                .table("materis_quizzes")
                .select(QUIZ_COLUMNS)
                .eq("module_id", module_id)
                .order("created_at")
            )
            if not is_admin_caller(user):
                query = query.eq("published", True)
            quizzes = await self._with_status(user, await fetch_all(query))
            return {"module_id": module_id, "quizzes": quizzes, "total": len(quizzes)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZZES_FETCH_ERROR")

    async def get_quiz_async(self, quiz_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        try:
            client = self._reader(user)
            quiz = await fetch_one(client.table("materis_quizzes").select(QUIZ_COLUMNS).eq("id", quiz_id))
            if not quiz or (not quiz.get("published") and not is_admin_caller(user)):
                raise ApiError(404, "QUIZ_NOT_FOUND", "Quiz tidak ditemukan atau belum dipublikasi")

            questions = await self._questions(client, quiz_id, user)
            result = {**quiz, "question_count": len(questions), "questions": questions}

            if user is not None:
                attempts = await fetch_all(
                    self.store.scoped.table("user_quiz_attempts")
                    .select("id, score, is_passed, started_at, completed_at")
                    .eq("user_id", user.id)
                    .eq("quiz_id", quiz_id)
                    .order("started_at", desc=True)
                )
                ongoing = next((a for a in attempts if not a.get("completed_at")), None)
                latest = next((a for a in attempts if a.get("completed_at")), None)
                result["user_status"] = {
                    "has_ongoing_attempt": ongoing is not None,
                    "ongoing_attempt_id": (ongoing or {}).get("id"),
                    "is_completed": latest is not None,
                    "latest_score": (latest or {}).get("score"),
                    "is_passed": bool((latest or {}).get("is_passed")),
                    "attempt_count": len(attempts),
                    "last_completed_at": (latest or {}).get("completed_at"),
                }
            return result
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_FETCH_ERROR")

    async def get_quiz_for_sub_materi_async(self, sub_materi_id: str, user: Optional[CurrentUser]) -> Dict[str, Any]:
        try:
            client = self._reader(user)
            await load_visible_sub_materi(client, sub_materi_id, user)

            query = client.table("materis_quizzes").select(QUIZ_COLUMNS).eq("sub_materi_id", sub_materi_id)
            if not is_admin_caller(user):
                query = query.eq("published", True)
            quiz = await fetch_one(query.order("created_at", desc=True))
            if not quiz:
                raise ApiError(404, "QUIZ_NOT_FOUND", "Quiz untuk materi ini belum tersedia")

            questions = await self._questions(client, str(quiz["id"]), user)
            [quiz] = await self._with_status(user, [quiz])
            return {**quiz, "question_count": len(questions), "questions": questions}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_FETCH_ERROR")

    # ==============================
    # 🧩 ADMIN: QUIZ
    # ==============================

    async def _module_of(self, sub_materi_id: str) -> str:
        sub_materi = await fetch_one(
            self.store.elevated.table("sub_materis").select("id, module_id").eq("id", sub_materi_id)
        )
        if not sub_materi:
            raise ApiError(404, "SUB_MATERI_NOT_FOUND", "Sub materi tidak ditemukan")
        return str(sub_materi["module_id"])

    @staticmethod
    def _question_rows(quiz_id: str, questions: List[CreateQuestion], start: int = 1) -> List[Dict[str, Any]]:
        return [
            {
                "quiz_id": quiz_id,
                "question_text": q.question_text.strip(),
                "options": q.options,
                "correct_answer_index": q.correct_answer_index,
                "explanation": q.explanation,
                "order_index": q.order_index if q.order_index is not None else start + i,
            }
            for i, q in enumerate(questions)
        ]

    async def create_quiz_async(self, schema: CreateQuiz) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            sub_materi_id = str(schema.sub_materi_id)
            module_id = await self._module_of(sub_materi_id)

            # 1️⃣ Tạo quiz
            payload = schema.model_dump(mode="json", exclude={"questions"})
            payload["module_id"] = module_id
            quiz = await execute_one(client.table("materis_quizzes").insert(payload))
            if not quiz:
                raise ApiError(500, "QUIZ_CREATE_ERROR", "Gagal membuat quiz")

            # 2️⃣ Tạo câu hỏi, lỗi thì xoá quiz vừa tạo
            questions: List[Dict[str, Any]] = []
            if schema.questions:
                try:
                    res = await client.table("materis_quiz_questions").insert(
                        self._question_rows(str(quiz["id"]), schema.questions)
                    ).execute()
                    questions = list(res.data or [])
                except Exception:
                    logger.warning(f"⚠️ Tạo câu hỏi thất bại → xoá quiz {quiz['id']}")
                    await client.table("materis_quizzes").delete().eq("id", quiz["id"]).execute()
                    raise

            return {**quiz, "questions": questions}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_CREATE_ERROR")

    async def update_quiz_async(self, quiz_id: str, schema: UpdateQuiz) -> Dict[str, Any]:
        try:
            await self._require_quiz(quiz_id)
            changes = schema.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")
            if changes.get("sub_materi_id"):
                changes["module_id"] = await self._module_of(changes["sub_materi_id"])
            changes["updated_at"] = now_iso()
            return await execute_one(
                self.store.elevated.table("materis_quizzes").update(changes).eq("id", quiz_id)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_UPDATE_ERROR")

    async def delete_quiz_async(self, quiz_id: str) -> Dict[str, Any]:
        try:
            quiz = await self._require_quiz(quiz_id)
            await self.store.elevated.table("materis_quizzes").delete().eq("id", quiz_id).execute()
            return {"id": quiz_id, "title": quiz.get("title")}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_DELETE_ERROR")

    # ==============================
    # 🧩 ADMIN: CÂU HỎI
    # ==============================

    async def list_questions_async(self, quiz_id: str) -> List[Dict[str, Any]]:
        try:
            await self._require_quiz(quiz_id)
            return await fetch_all(
                self.store.elevated.table("materis_quiz_questions")
                .select(QUESTION_ADMIN_COLUMNS)
                .eq("quiz_id", quiz_id)
                .order("order_index")
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUESTIONS_FETCH_ERROR")

    async def add_question_async(self, quiz_id: str, schema: CreateQuestion) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            await self._require_quiz(quiz_id)
            last = await fetch_one(
                client.table("materis_quiz_questions")
                .select("order_index")
                .eq("quiz_id", quiz_id)
                .order("order_index", desc=True)
            )
            start = int((last or {}).get("order_index") or 0) + 1
            [row] = self._question_rows(quiz_id, [schema], start)
            created = await execute_one(client.table("materis_quiz_questions").insert(row))
            if not created:
                raise ApiError(500, "QUESTION_CREATE_ERROR", "Gagal menambahkan soal")
            return created
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUESTION_CREATE_ERROR")

    async def update_question_async(self, quiz_id: str, question_id: str, schema: UpdateQuestion) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(
                client.table("materis_quiz_questions")
                .select(QUESTION_ADMIN_COLUMNS)
                .eq("id", question_id)
                .eq("quiz_id", quiz_id)
            )
            if not existing:
                raise ApiError(404, "QUESTION_NOT_FOUND", "Soal tidak ditemukan")

            changes = schema.model_dump(exclude_unset=True)
            if not changes:
                raise ApiError(400, "NO_CHANGES", "Tidak ada perubahan")

            options = changes.get("options", existing.get("options") or [])
            correct = changes.get("correct_answer_index", existing.get("correct_answer_index"))
            if correct is None or correct >= len(options):
                raise ApiError(400, "INVALID_CORRECT_ANSWER", "Index jawaban benar melebihi jumlah pilihan")

            changes["updated_at"] = now_iso()
            return await execute_one(
                client.table("materis_quiz_questions").update(changes).eq("id", question_id)
            )
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUESTION_UPDATE_ERROR")

    async def delete_question_async(self, quiz_id: str, question_id: str) -> Dict[str, Any]:
        try:
            client = self.store.elevated
            existing = await fetch_one(
                client.table("materis_quiz_questions").select("id").eq("id", question_id).eq("quiz_id", quiz_id)
            )
            if not existing:
                raise ApiError(404, "QUESTION_NOT_FOUND", "Soal tidak ditemukan")
            await client.table("materis_quiz_questions").delete().eq("id", question_id).execute()
            return {"id": question_id, "quiz_id": quiz_id}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUESTION_DELETE_ERROR")
