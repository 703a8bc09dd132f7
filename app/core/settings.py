# app/core/settings.py
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""  # tùy chọn, thiếu thì các luồng admin bị hạn chế

    # JWT (xác thực token cục bộ khi có secret)
    SUPABASE_JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Storage
    POIN_MEDIA_BUCKET: str = "poin_media"
    PROFILE_PHOTO_BUCKET: str = "profile_photos"
    POIN_MEDIA_MAX_BYTES: int = 50 * 1024 * 1024
    PROFILE_PHOTO_MAX_BYTES: int = 5 * 1024 * 1024

    # App
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"  # tránh crash nếu .env có key dư


settings = Settings()
