import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.core.enum import AttemptStatus
from app.libs.formats.response import success
from app.schemas.user.quiz import SubmitQuizAnswers
from app.services.user.quiz import UserQuizService

router = APIRouter(prefix="/user-quizzes", tags=["User Quiz"])


@router.get("/my-attempts", status_code=status.HTTP_200_OK)
async def my_attempts(
    status_filter: AttemptStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.my_attempts_async(user, status_filter, page, limit)
    return success("ATTEMPTS_FETCH_SUCCESS", "Riwayat quiz berhasil diambil", data)


@router.post("/{quiz_id}/start", status_code=status.HTTP_201_CREATED)
async def start_quiz(
    quiz_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.start_attempt_async(user, str(quiz_id))
    return success("QUIZ_STARTED", "Quiz berhasil dimulai", data)


@router.get("/{quiz_id}/questions", status_code=status.HTTP_200_OK)
async def get_questions(
    quiz_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.get_questions_async(user, str(quiz_id))
    return success("QUESTIONS_FETCH_SUCCESS", "Soal berhasil diambil", data)


@router.put("/{quiz_id}/answers", status_code=status.HTTP_200_OK)
async def save_answers(
    quiz_id: uuid.UUID,
    schema: SubmitQuizAnswers = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.save_answers_async(user, str(quiz_id), schema)
    return success("ANSWERS_SAVED", "Jawaban berhasil disimpan", data)


@router.post("/{quiz_id}/submit", status_code=status.HTTP_200_OK)
async def submit_quiz(
    quiz_id: uuid.UUID,
    schema: SubmitQuizAnswers = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.submit_answers_async(user, str(quiz_id), schema)
    return success("QUIZ_SUBMITTED", "Quiz berhasil diselesaikan", data)


@router.get("/{quiz_id}/results", status_code=status.HTTP_200_OK)
async def get_results(
    quiz_id: uuid.UUID,
    include_answers: bool = Query(False, alias="includeAnswers"),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: UserQuizService = Depends(UserQuizService),
):
    user = await authorization.get_current_user()
    data = await quiz_service.get_results_async(user, str(quiz_id), include_answers)
    return success("RESULTS_FETCH_SUCCESS", "Hasil quiz berhasil diambil", data)
