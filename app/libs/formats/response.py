from typing import Any, Dict

_MISSING = object()


def success(code: str, message: str, data: Any = _MISSING) -> Dict[str, Any]:
    """Envelope chuẩn cho response thành công: {error, code, message, data?}."""
    body: Dict[str, Any] = {"error": False, "code": code, "message": message}
    if data is not _MISSING:
        body["data"] = data
    return body


def failure(code: str, message: str, data: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": True, "code": code, "message": message}
    if data is not None:
        body["data"] = data
    return body


def paginate(total: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Metadata phân trang dùng chung cho các API list."""
    safe_page = max(1, int(page or 1))
    safe_limit = max(1, int(limit or 10))
    total_pages = -(-total // safe_limit) if total else 0
    return {
        "page": safe_page,
        "limit": safe_limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": safe_page < total_pages,
        "hasPrevPage": safe_page > 1,
    }


def page_range(page: int, limit: int) -> tuple[int, int]:
    """Chuyển page/limit sang khoảng [start, end] (inclusive) cho .range()."""
    start = (page - 1) * limit
    return start, start + limit - 1
