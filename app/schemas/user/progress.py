import uuid
from typing import Annotated, Optional

from pydantic import BaseModel, Field


class CompletePoinBody(BaseModel):
    module_id: uuid.UUID


class CompleteSubMateriBody(BaseModel):
    module_id: uuid.UUID


class SubmitModuleProgress(BaseModel):
    """Frontend tự tính phần trăm / trạng thái hoàn thành module rồi gửi lên."""

    progress_percentage: Annotated[float, Field(ge=0, le=100)]
    is_completed: Optional[bool] = None
