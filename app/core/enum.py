from enum import Enum


class UserRole(str, Enum):
    """Vai trò lưu trong bảng profiles."""
    PENGGUNA = "pengguna"      # người dùng thường
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ADMIN_ROLES = [UserRole.ADMIN.value, UserRole.SUPERADMIN.value]


class MediaType(str, Enum):
    """Loại media đính kèm poin, suy ra từ MIME."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"
    OTHER = "other"

    @classmethod
    def from_mime(cls, mime: str | None) -> "MediaType":
        mime = (mime or "").lower()
        if mime.startswith("image/"):
            return cls.IMAGE
        if mime.startswith("video/"):
            return cls.VIDEO
        if mime.startswith("audio/"):
            return cls.AUDIO
        if mime == "application/pdf":
            return cls.PDF
        return cls.OTHER


class StoreErrorKind(str, Enum):
    """Phân loại lỗi trả về từ PostgREST / Postgres."""
    MISSING_RELATION = "MissingRelation"
    MISSING_COLUMN = "MissingColumn"
    PERMISSION_DENIED = "PermissionDenied"
    UNKNOWN = "Unknown"


class AttemptStatus(str, Enum):
    COMPLETED = "completed"
    ONGOING = "ongoing"
