import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.context import current_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Lưu Request hiện tại vào context để lấy lại ở service + log mỗi request."""

    async def dispatch(self, request, call_next):
        token = current_request.set(request)
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            current_request.reset(token)
            elapsed = (time.perf_counter() - started) * 1000
            logger.info(f"{request.method} {request.url.path} → {status} ({elapsed:.1f}ms)")
        return response
