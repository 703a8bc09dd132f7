from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.libs.formats.text import PHONE_PATTERN

FullName = Annotated[str, Field(min_length=2, max_length=100)]
Phone = Annotated[str, Field(pattern=PHONE_PATTERN)]


class RegisterUser(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=6, max_length=72)]
    full_name: FullName
    phone: Optional[Phone] = None
    address: Optional[str] = Field(default=None, max_length=255)


class LoginUser(BaseModel):
    """Đăng nhập bằng email hoặc số điện thoại."""

    identifier: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Annotated[str, Field(min_length=6)]

    @model_validator(mode="after")
    def _need_identifier(self):
        if not (self.identifier or self.email or self.phone):
            raise ValueError("email atau nomor telepon wajib diisi")
        return self

    @property
    def login_id(self) -> str:
        return (self.identifier or self.email or self.phone or "").strip()


class RefreshToken(BaseModel):
    refresh_token: Annotated[str, Field(min_length=1)]


class ProfileUpsert(BaseModel):
    full_name: FullName
    phone: Optional[Phone] = None
    address: Optional[str] = Field(default=None, max_length=255)
