# app/core/errors.py
from typing import Any, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from supabase import PostgrestAPIError

from app.core.enum import StoreErrorKind
from app.libs.formats.response import failure

# Mã lỗi Postgres / PostgREST đã biết
_STORE_ERROR_CODES = {
    "42P01": StoreErrorKind.MISSING_RELATION,
    "PGRST205": StoreErrorKind.MISSING_RELATION,
    "42703": StoreErrorKind.MISSING_COLUMN,
    "PGRST204": StoreErrorKind.MISSING_COLUMN,
    "42501": StoreErrorKind.PERMISSION_DENIED,
}

# PostgREST trả PGRST116 khi .single() không có dòng nào
NO_ROWS_CODE = "PGRST116"

_DEFAULT_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


class ApiError(HTTPException):
    """HTTPException mang theo code ổn định + message cho envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        data: Optional[Any] = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={"error_code": code, "message": message, "data": data},
        )
        self.code = code
        self.message = message
        self.data = data


def internal_error(e: Exception, code: str = "INTERNAL_ERROR") -> ApiError:
    """Bọc exception không mong muốn thành 500, chi tiết chỉ nằm trong data.details."""
    return ApiError(500, code, "Internal server error", {"details": str(e)})


def classify_store_error(exc: BaseException) -> StoreErrorKind:
    code = getattr(exc, "code", None)
    if code is None:
        return StoreErrorKind.UNKNOWN
    return _STORE_ERROR_CODES.get(str(code), StoreErrorKind.UNKNOWN)


def store_error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc)


# ==============================
# 🧩 EXCEPTION HANDLERS
# ==============================


def _http_exception_body(exc: StarletteHTTPException) -> dict:
    detail = exc.detail
    if isinstance(detail, dict):
        code = detail.get("error_code") or _DEFAULT_CODES.get(exc.status_code, "ERROR")
        message = detail.get("message") or "Terjadi kesalahan"
        return failure(code, message, detail.get("data"))
    return failure(
        _DEFAULT_CODES.get(exc.status_code, "ERROR"),
        str(detail) if detail else "Terjadi kesalahan",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} → {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_http_exception_body(exc),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", []) if p != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"field": "", "message": "Invalid request"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return JSONResponse(
        status_code=422,
        content=failure("VALIDATION_ERROR", message, {"errors": errors}),
    )


async def store_exception_handler(request: Request, exc: PostgrestAPIError):
    kind = classify_store_error(exc)
    logger.error(f"❌ Store error [{kind.value}] {request.url.path}: {store_error_message(exc)}")
    status = 403 if kind == StoreErrorKind.PERMISSION_DENIED else 500
    code = "PERMISSION_DENIED" if status == 403 else "STORE_ERROR"
    message = "Akses ditolak" if status == 403 else "Internal server error"
    return JSONResponse(
        status_code=status,
        content=failure(code, message, {"details": store_error_message(exc), "kind": kind.value}),
    )


async def transport_exception_handler(request: Request, exc: httpx.HTTPError):
    logger.error(f"❌ Không kết nối được store khi xử lý {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content=failure("STORE_UNAVAILABLE", "Layanan sedang tidak tersedia", {"details": str(exc)}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error at {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=failure("INTERNAL_ERROR", "Internal server error", {"details": str(exc)}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PostgrestAPIError, store_exception_handler)
    app.add_exception_handler(httpx.HTTPError, transport_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
