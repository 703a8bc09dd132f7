import uuid
from typing import Annotated, List

from pydantic import BaseModel, Field


class QuizAnswerIn(BaseModel):
    question_id: uuid.UUID
    selected_option_index: Annotated[int, Field(ge=0)]


class SubmitQuizAnswers(BaseModel):
    answers: Annotated[List[QuizAnswerIn], Field(min_length=1)]
