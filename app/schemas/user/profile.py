from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field

from app.libs.formats.text import PHONE_PATTERN


class ProfileUpdate(BaseModel):
    full_name: Optional[Annotated[str, Field(min_length=2, max_length=100)]] = None
    phone: Optional[Annotated[str, Field(pattern=PHONE_PATTERN)]] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(default=None, max_length=255)


class ChangePassword(BaseModel):
    current_password: Annotated[str, Field(min_length=6)]
    new_password: Annotated[str, Field(min_length=6, max_length=72)]
