from typing import Any, Dict, Optional

import jwt

from app.core.settings import settings


class SecurityService:
    def __init__(self):
        self.secret_key = settings.SUPABASE_JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.audience = settings.JWT_AUDIENCE

    @property
    def can_verify_locally(self) -> bool:
        return bool(self.secret_key)

    # 🔐 JWT (access token do Supabase Auth phát hành)
    async def decode_access_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
            )
        except jwt.ExpiredSignatureError:
            raise ValueError("Token expired")
        except jwt.InvalidTokenError:
            raise ValueError("Invalid token")

    @staticmethod
    def extract_bearer(authorization: Optional[str]) -> Optional[str]:
        """Lấy token từ header `Authorization: Bearer <token>`."""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()
