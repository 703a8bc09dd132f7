from typing import Annotated, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from app.libs.formats.text import PHONE_PATTERN

FullName = Annotated[str, Field(min_length=2, max_length=100)]
Phone = Annotated[str, Field(pattern=PHONE_PATTERN)]


class AdminCreateUser(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=6, max_length=72)]
    full_name: FullName
    phone: Optional[Phone] = None
    address: Optional[str] = Field(default=None, max_length=255)
    role: Literal["pengguna", "admin"] = "pengguna"


class AdminUpdateUser(BaseModel):
    full_name: Optional[FullName] = None
    phone: Optional[Phone] = None
    address: Optional[str] = Field(default=None, max_length=255)


class UpdateUserRole(BaseModel):
    role: Literal["pengguna", "admin"]


class InviteAdmin(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=6, max_length=72)]
    full_name: FullName
    phone: Optional[Phone] = None
