from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from loguru import logger

from app.core.deps import CurrentUser
from app.core.enum import AttemptStatus
from app.core.errors import ApiError, internal_error
from app.db.store import StoreClients, execute_one, fetch_all, fetch_one, fetch_page, get_store
from app.libs.formats.datetime import now_iso
from app.libs.formats.response import page_range, paginate
from app.schemas.user.quiz import QuizAnswerIn, SubmitQuizAnswers
from app.services.user.progress import ProgressService

QUIZ_PUBLIC_COLUMNS = "id, sub_materi_id, module_id, title, description, passing_score, time_limit_seconds, published"


def score_answers(
    questions: List[Dict[str, Any]], answers: List[QuizAnswerIn]
) -> Dict[str, Any]:
    """
    Chấm điểm: đúng khi selected_option_index == correct_answer_index.
    Câu trả lời cho question không thuộc quiz bị bỏ qua.
    """
    correct_by_id = {str(q["id"]): q.get("correct_answer_index") for q in questions}

    graded: Dict[str, Dict[str, Any]] = {}
    for answer in answers:
        qid = str(answer.question_id)
        if qid not in correct_by_id:
            continue
        # cùng 1 câu gửi nhiều lần → lấy lần cuối
        graded[qid] = {
            "question_id": qid,
            "selected_option_index": answer.selected_option_index,
            "is_correct": answer.selected_option_index == correct_by_id[qid],
        }

    total = len(questions)
    correct = sum(1 for g in graded.values() if g["is_correct"])
    score = (correct / total) * 100 if total else 0.0
    return {"answers": list(graded.values()), "correct": correct, "total": total, "score": score}


class UserQuizService:
    def __init__(
        self,
        store: StoreClients = Depends(get_store),
        progress: ProgressService = Depends(ProgressService),
    ):
        self.store = store
        self.progress = progress

    @property
    def client(self):
        return self.store.scoped

    async def _open_attempt(self, user_id: str, quiz_id: str) -> Optional[Dict[str, Any]]:
        return await fetch_one(
            self.client.table("user_quiz_attempts")
            .select("id, started_at, completed_at")
            .eq("user_id", user_id)
            .eq("quiz_id", quiz_id)
            .is_("completed_at", "null")
            .order("started_at", desc=True)
        )

    async def _save_answers(self, attempt_id: str, graded: List[Dict[str, Any]]) -> None:
        if not graded:
            return
        rows = [{**g, "attempt_id": attempt_id} for g in graded]
        await self.client.table("user_quiz_answers").upsert(
            rows, on_conflict="attempt_id,question_id"
        ).execute()

    async def _questions(self, quiz_id: str, columns: str) -> List[Dict[str, Any]]:
        return await fetch_all(
            self.client.table("materis_quiz_questions")
            .select(columns)
            .eq("quiz_id", quiz_id)
            .order("order_index")
        )

    # ==============================
    # 🧩 ATTEMPT
    # ==============================

    async def start_attempt_async(self, user: CurrentUser, quiz_id: str) -> Dict[str, Any]:
        try:
            quiz = await fetch_one(
                self.client.table("materis_quizzes")
                .select(QUIZ_PUBLIC_COLUMNS)
                .eq("id", quiz_id)
                .eq("published", True)
            )
            if not quiz:
                raise ApiError(404, "QUIZ_NOT_FOUND", "Quiz tidak ditemukan atau belum dipublikasi")

            ongoing = await self._open_attempt(user.id, quiz_id)
            if ongoing:
                raise ApiError(
                    409,
                    "QUIZ_ALREADY_STARTED",
                    "Anda sudah memulai quiz ini. Selesaikan terlebih dahulu.",
                    {"attempt_id": ongoing["id"]},
                )

            attempt = await execute_one(
                self.client.table("user_quiz_attempts").insert(
                    {"user_id": user.id, "quiz_id": quiz_id, "started_at": now_iso()}
                )
            )
            if not attempt:
                raise ApiError(500, "ATTEMPT_CREATE_ERROR", "Gagal memulai quiz")

            return {
                "attempt_id": attempt["id"],
                "quiz": {
                    "id": quiz["id"],
                    "title": quiz.get("title"),
                    "description": quiz.get("description"),
                    "time_limit_seconds": quiz.get("time_limit_seconds"),
                    "passing_score": quiz.get("passing_score"),
                },
                "started_at": attempt.get("started_at"),
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "ATTEMPT_CREATE_ERROR")

    async def get_questions_async(self, user: CurrentUser, quiz_id: str) -> Dict[str, Any]:
        """Câu hỏi của attempt đang mở (ẩn đáp án đúng, kèm câu đã lưu nháp)."""
        try:
            attempt = await self._open_attempt(user.id, quiz_id)
            if not attempt:
                raise ApiError(
                    400, "QUIZ_NOT_STARTED", "Anda belum memulai quiz ini. Mulai quiz terlebih dahulu."
                )

            questions = await self._questions(quiz_id, "id, question_text, options, order_index")
            saved = await fetch_all(
                self.client.table("user_quiz_answers")
                .select("question_id, selected_option_index")
                .eq("attempt_id", attempt["id"])
            )
            selected = {str(a["question_id"]): a.get("selected_option_index") for a in saved}

            return {
                "attempt_id": attempt["id"],
                "started_at": attempt.get("started_at"),
                "questions": [
                    {
                        "id": q["id"],
                        "question_text": q.get("question_text"),
                        "options": q.get("options") or [],
                        "order_index": q.get("order_index"),
                        "selected_answer": selected.get(str(q["id"])),
                    }
                    for q in questions
                ],
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUESTIONS_FETCH_ERROR")

    async def save_answers_async(
        self, user: CurrentUser, quiz_id: str, schema: SubmitQuizAnswers
    ) -> Dict[str, Any]:
        """Lưu nháp câu trả lời; gửi lại cùng câu hỏi sẽ ghi đè."""
        try:
            attempt = await self._open_attempt(user.id, quiz_id)
            if not attempt:
                raise ApiError(
                    400, "QUIZ_NOT_STARTED", "Anda belum memulai quiz ini. Mulai quiz terlebih dahulu."
                )

            questions = await self._questions(quiz_id, "id, correct_answer_index")
            graded = score_answers(questions, schema.answers)["answers"]
            await self._save_answers(attempt["id"], graded)
            return {"attempt_id": attempt["id"], "saved": len(graded)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "ANSWERS_SAVE_ERROR")

    async def submit_answers_async(
        self, user: CurrentUser, quiz_id: str, schema: SubmitQuizAnswers
    ) -> Dict[str, Any]:
        try:
            # 1️⃣ Attempt đang mở
            attempt = await self._open_attempt(user.id, quiz_id)
            if not attempt:
                raise ApiError(404, "ATTEMPT_NOT_FOUND", "Quiz attempt tidak ditemukan atau sudah selesai")

            quiz = await fetch_one(
                self.client.table("materis_quizzes")
                .select("id, title, passing_score, sub_materi_id, module_id")
                .eq("id", quiz_id)
            )
            if not quiz:
                raise ApiError(404, "QUIZ_NOT_FOUND", "Quiz tidak ditemukan")

            # 2️⃣ Chấm điểm
            questions = await self._questions(quiz_id, "id, correct_answer_index")
            result = score_answers(questions, schema.answers)
            passing_score = quiz.get("passing_score") or 70
            is_passed = result["score"] >= passing_score

            # 3️⃣ Lưu câu trả lời + đóng attempt
            # Bộ đáp án của attempt = đúng payload đã chấm, bỏ các bản nháp cũ
            await self.client.table("user_quiz_answers").delete().eq("attempt_id", attempt["id"]).execute()
            await self._save_answers(attempt["id"], result["answers"])
            completed = await execute_one(
                self.client.table("user_quiz_attempts")
                .update({"completed_at": now_iso(), "score": result["score"], "is_passed": is_passed})
                .eq("id", attempt["id"])
                .eq("user_id", user.id)
            )

            # 4️⃣ Ghi tiến độ sub-materi + rollup module
            sub_materi_id = quiz.get("sub_materi_id")
            sub_materi_progress = None
            if sub_materi_id:
                sub_materi = await fetch_one(
                    self.client.table("sub_materis").select("id, module_id").eq("id", sub_materi_id)
                )
                module_id = (sub_materi or {}).get("module_id") or quiz.get("module_id")
                if module_id:
                    sub_materi_progress = await self.progress.record_sub_materi_progress(
                        user.id,
                        str(module_id),
                        str(sub_materi_id),
                        is_completed=is_passed,
                        progress_percentage=100 if is_passed else result["score"],
                    )
                    await self.progress.recompute_module_rollup(user.id, str(module_id))
                else:
                    logger.warning(f"⚠️ Quiz {quiz_id} không xác định được module → bỏ qua ghi tiến độ")

            return {
                "attempt": completed or {"id": attempt["id"]},
                "results": {
                    "score": result["score"],
                    "correct_answers": result["correct"],
                    "total_questions": result["total"],
                    "is_passed": is_passed,
                    "passing_score": passing_score,
                },
                "sub_materi_progress": sub_materi_progress,
            }
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "QUIZ_SUBMIT_ERROR")

    async def get_results_async(
        self, user: CurrentUser, quiz_id: str, include_answers: bool = False
    ) -> Dict[str, Any]:
        try:
            attempt = await fetch_one(
                self.client.table("user_quiz_attempts")
                .select("id, score, is_passed, started_at, completed_at")
                .eq("user_id", user.id)
                .eq("quiz_id", quiz_id)
                .not_.is_("completed_at", "null")
                .order("completed_at", desc=True)
            )
            if not attempt:
                raise ApiError(404, "NO_RESULTS_FOUND", "Belum ada hasil quiz untuk ditampilkan")

            quiz = await fetch_one(
                self.client.table("materis_quizzes").select("id, title, passing_score").eq("id", quiz_id)
            )

            answer_details = None
            if include_answers:
                questions = await self._questions(
                    quiz_id, "id, question_text, options, correct_answer_index, explanation, order_index"
                )
                answers = await fetch_all(
                    self.client.table("user_quiz_answers")
                    .select("question_id, selected_option_index, is_correct")
                    .eq("attempt_id", attempt["id"])
                )
                by_question = {str(a["question_id"]): a for a in answers}
                answer_details = []
                for q in questions:
                    answer = by_question.get(str(q["id"]), {})
                    answer_details.append(
                        {
                            "question_id": q["id"],
                            "question_text": q.get("question_text"),
                            "options": q.get("options") or [],
                            "correct_answer_index": q.get("correct_answer_index"),
                            "explanation": q.get("explanation"),
                            "selected_option_index": answer.get("selected_option_index"),
                            "is_correct": bool(answer.get("is_correct")),
                        }
                    )

            return {"quiz": quiz, "attempt": attempt, "answer_details": answer_details}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "RESULTS_FETCH_ERROR")

    async def my_attempts_async(
        self,
        user: CurrentUser,
        status: Optional[AttemptStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        try:
            query = (
                self.client.table("user_quiz_attempts")
                .select("id, quiz_id, score, is_passed, started_at, completed_at", count="exact")
                .eq("user_id", user.id)
                .order("started_at", desc=True)
            )
            if status == AttemptStatus.COMPLETED:
                query = query.not_.is_("completed_at", "null")
            elif status == AttemptStatus.ONGOING:
                query = query.is_("completed_at", "null")

            start, end = page_range(page, limit)
            attempts, total = await fetch_page(query.range(start, end))

            quiz_ids = list({str(a["quiz_id"]) for a in attempts})
            quizzes: Dict[str, Dict[str, Any]] = {}
            if quiz_ids:
                rows = await fetch_all(
                    self.client.table("materis_quizzes")
                    .select("id, title, passing_score, sub_materi_id")
                    .in_("id", quiz_ids)
                )
                quizzes = {str(r["id"]): r for r in rows}

            items = [
                {
                    **a,
                    "status": (AttemptStatus.COMPLETED if a.get("completed_at") else AttemptStatus.ONGOING).value,
                    "quiz": quizzes.get(str(a["quiz_id"])),
                }
                for a in attempts
            ]
            return {"items": items, "pagination": paginate(total, page, limit)}
        except HTTPException:
            raise
        except Exception as e:
            raise internal_error(e, "ATTEMPT_FETCH_ERROR")
