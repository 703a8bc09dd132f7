import uuid
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

Tags = Annotated[List[Annotated[str, Field(max_length=50)]], Field(max_length=10)]


class CreateNote(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Annotated[str, Field(min_length=1, max_length=10000)]
    module_id: Optional[uuid.UUID] = None
    sub_materi_id: Optional[uuid.UUID] = None
    pinned: bool = False
    archived: bool = False
    tags: Optional[Tags] = None


class UpdateNote(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[Annotated[str, Field(min_length=1, max_length=10000)]] = None
    module_id: Optional[uuid.UUID] = None
    sub_materi_id: Optional[uuid.UUID] = None
    pinned: Optional[bool] = None
    archived: Optional[bool] = None
    tags: Optional[Tags] = None
