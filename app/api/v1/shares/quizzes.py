import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.admin.quiz import CreateQuestion, CreateQuiz, UpdateQuestion, UpdateQuiz
from app.services.shares.quiz import QuizService

router = APIRouter(prefix="/quizzes", tags=["Quizzes"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_quizzes(
    module_id: uuid.UUID | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    user = await authorization.get_current_user_if_any()
    data = await quiz_service.list_quizzes_async(user, str(module_id) if module_id else None, page, limit)
    return success("QUIZZES_FETCH_SUCCESS", "Daftar quiz berhasil diambil", data)


@router.get("/module/{module_id}", status_code=status.HTTP_200_OK)
async def list_quizzes_by_module(
    module_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    user = await authorization.get_current_user_if_any()
    data = await quiz_service.list_by_module_async(str(module_id), user)
    return success("QUIZZES_FETCH_SUCCESS", "Quiz berhasil diambil", data)


@router.get("/{quiz_id}", status_code=status.HTTP_200_OK)
async def get_quiz(
    quiz_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    user = await authorization.get_current_user_if_any()
    data = await quiz_service.get_quiz_async(str(quiz_id), user)
    return success("QUIZ_FETCH_SUCCESS", "Detail quiz berhasil diambil", data)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    schema: CreateQuiz = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.create_quiz_async(schema)
    return success("QUIZ_CREATE_SUCCESS", "Quiz berhasil dibuat", data)


@router.put("/{quiz_id}", status_code=status.HTTP_200_OK)
async def update_quiz(
    quiz_id: uuid.UUID,
    schema: UpdateQuiz = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.update_quiz_async(str(quiz_id), schema)
    return success("QUIZ_UPDATE_SUCCESS", "Quiz berhasil diperbarui", data)


@router.delete("/{quiz_id}", status_code=status.HTTP_200_OK)
async def delete_quiz(
    quiz_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.delete_quiz_async(str(quiz_id))
    return success("QUIZ_DELETE_SUCCESS", "Quiz berhasil dihapus", data)


# ==============================
# 🧩 CÂU HỎI
# ==============================


@router.get("/{quiz_id}/questions", status_code=status.HTTP_200_OK)
async def list_questions(
    quiz_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    items = await quiz_service.list_questions_async(str(quiz_id))
    return success("QUESTIONS_FETCH_SUCCESS", "Soal berhasil diambil", {"items": items, "total": len(items)})


@router.post("/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
async def add_question(
    quiz_id: uuid.UUID,
    schema: CreateQuestion = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.add_question_async(str(quiz_id), schema)
    return success("QUESTION_CREATE_SUCCESS", "Soal berhasil ditambahkan", data)


@router.put("/{quiz_id}/questions/{question_id}", status_code=status.HTTP_200_OK)
async def update_question(
    quiz_id: uuid.UUID,
    question_id: uuid.UUID,
    schema: UpdateQuestion = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.update_question_async(str(quiz_id), str(question_id), schema)
    return success("QUESTION_UPDATE_SUCCESS", "Soal berhasil diperbarui", data)


@router.delete("/{quiz_id}/questions/{question_id}", status_code=status.HTTP_200_OK)
async def delete_question(
    quiz_id: uuid.UUID,
    question_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    quiz_service: QuizService = Depends(QuizService),
):
    await authorization.require_admin()
    data = await quiz_service.delete_question_async(str(quiz_id), str(question_id))
    return success("QUESTION_DELETE_SUCCESS", "Soal berhasil dihapus", data)
