from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field


class CreateSchedule(BaseModel):
    title: Annotated[str, Field(min_length=3, max_length=200)]
    description: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=200)
    date: datetime


class UpdateSchedule(BaseModel):
    title: Optional[Annotated[str, Field(min_length=3, max_length=200)]] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=200)
    date: Optional[datetime] = None
