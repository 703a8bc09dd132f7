from typing import Annotated, Optional

from pydantic import BaseModel, Field

Title = Annotated[str, Field(min_length=3, max_length=200)]


class CreatePoin(BaseModel):
    title: Title
    content_html: str = ""
    duration_label: Optional[str] = Field(default=None, max_length=50)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    order_index: Optional[int] = Field(default=None, ge=0)


class UpdatePoin(BaseModel):
    title: Optional[Title] = None
    content_html: Optional[str] = None
    duration_label: Optional[str] = Field(default=None, max_length=50)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    order_index: Optional[int] = Field(default=None, ge=0)


class UpdatePoinMedia(BaseModel):
    caption: Optional[str] = Field(default=None, max_length=500)
    order_index: Optional[int] = Field(default=None, ge=0)
