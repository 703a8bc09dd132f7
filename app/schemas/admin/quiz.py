import uuid
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, model_validator

Options = Annotated[List[Annotated[str, Field(min_length=1)]], Field(min_length=2, max_length=4)]


class CreateQuestion(BaseModel):
    question_text: Annotated[str, Field(min_length=5)]
    options: Options
    correct_answer_index: Annotated[int, Field(ge=0)]
    explanation: Optional[str] = None
    order_index: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_correct_index(self):
        if self.correct_answer_index >= len(self.options):
            raise ValueError("Index jawaban benar melebihi jumlah pilihan")
        return self


class UpdateQuestion(BaseModel):
    question_text: Optional[Annotated[str, Field(min_length=5)]] = None
    options: Optional[Options] = None
    correct_answer_index: Optional[Annotated[int, Field(ge=0)]] = None
    explanation: Optional[str] = None
    order_index: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_correct_index(self):
        if (
            self.options is not None
            and self.correct_answer_index is not None
            and self.correct_answer_index >= len(self.options)
        ):
            raise ValueError("Index jawaban benar melebihi jumlah pilihan")
        return self


class CreateQuiz(BaseModel):
    sub_materi_id: uuid.UUID
    title: Annotated[str, Field(min_length=3, max_length=200)]
    description: Optional[str] = Field(default="", max_length=1000)
    passing_score: Annotated[int, Field(ge=1, le=100)] = 70
    time_limit_seconds: Optional[Annotated[int, Field(ge=60)]] = None
    published: bool = False
    questions: List[CreateQuestion] = []


class UpdateQuiz(BaseModel):
    sub_materi_id: Optional[uuid.UUID] = None
    title: Optional[Annotated[str, Field(min_length=3, max_length=200)]] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    passing_score: Optional[Annotated[int, Field(ge=1, le=100)]] = None
    time_limit_seconds: Optional[Annotated[int, Field(ge=60)]] = None
    published: Optional[bool] = None
