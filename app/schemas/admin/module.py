from typing import Annotated, Optional

from pydantic import BaseModel, Field

Title = Annotated[str, Field(min_length=3, max_length=200)]


class CreateModule(BaseModel):
    title: Title
    description: str = ""
    published: bool = False
    duration_label: Optional[str] = Field(default=None, max_length=50)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    lessons: Optional[int] = Field(default=None, ge=0)
    difficulty: Optional[str] = Field(default=None, max_length=50)
    category: Optional[str] = Field(default=None, max_length=100)


class UpdateModule(BaseModel):
    title: Optional[Title] = None
    description: Optional[str] = None
    published: Optional[bool] = None
    duration_label: Optional[str] = Field(default=None, max_length=50)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    lessons: Optional[int] = Field(default=None, ge=0)
    difficulty: Optional[str] = Field(default=None, max_length=50)
    category: Optional[str] = Field(default=None, max_length=100)
