import uuid
from typing import Annotated, Optional

from pydantic import BaseModel, Field

Title = Annotated[str, Field(min_length=3, max_length=200)]


class CreateSubMateri(BaseModel):
    module_id: uuid.UUID
    title: Title
    content: Annotated[str, Field(min_length=10)]
    order_index: Optional[int] = Field(default=None, ge=0)
    published: bool = False


class UpdateSubMateri(BaseModel):
    module_id: Optional[uuid.UUID] = None
    title: Optional[Title] = None
    content: Optional[Annotated[str, Field(min_length=10)]] = None
    order_index: Optional[int] = Field(default=None, ge=0)
    published: Optional[bool] = None
