from datetime import datetime, timedelta, timezone
from typing import Any

# Múi giờ WIB (UTC+7)
WIB_TIMEZONE = timezone(timedelta(hours=7))

_MONTHS_ID = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]


def now() -> datetime:
    """Lấy datetime hiện tại (UTC+7, có tzinfo).
    Đây là hàm chuẩn cho toàn bộ dự án.
    """
    return datetime.now(WIB_TIMEZONE)


def now_iso() -> str:
    """Timestamp ISO-8601 có offset, dùng để ghi vào các cột timestamptz."""
    return now().isoformat()


def parse(value: Any) -> datetime | None:
    """Parse timestamp từ store (ISO string) → datetime có tzinfo.
    - None / chuỗi rỗng → None
    - Thiếu tzinfo → giả định UTC (PostgREST trả timestamptz dạng UTC)
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def relative_time(value: Any, reference: datetime | None = None) -> str:
    """Thời gian tương đối bằng tiếng Indonesia cho dashboard ("5 menit lalu")."""
    dt = parse(value)
    if dt is None:
        return "Unknown"

    ref = reference or now()
    diff = ref - dt
    minutes = int(diff.total_seconds() // 60)
    hours = int(diff.total_seconds() // 3600)
    days = int(diff.total_seconds() // 86400)

    if minutes < 1:
        return "Baru saja"
    if minutes < 60:
        return f"{minutes} menit lalu"
    if hours < 24:
        return f"{hours} jam lalu"
    if days < 7:
        return f"{days} hari lalu"

    local = dt.astimezone(WIB_TIMEZONE)
    return f"{local.day} {_MONTHS_ID[local.month - 1]}"


def start_of_day(dt: datetime | None = None) -> datetime:
    dt = dt or now()
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)
