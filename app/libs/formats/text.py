import re

PHONE_PATTERN = r"^(\+62|62|0)8[0-9]{8,11}$"


def normalize_phone(phone: str) -> str:
    """Chuẩn hoá số điện thoại Indonesia về dạng 08xxxxxxxx."""
    digits = re.sub(r"[\s\-()]", "", phone or "")
    if digits.startswith("+62"):
        return "0" + digits[3:]
    if digits.startswith("62"):
        return "0" + digits[2:]
    return digits


def clean_search(term: str | None, max_length: int = 100) -> str:
    """Loại bỏ ký tự phá vỡ cú pháp filter or() của PostgREST."""
    if not term:
        return ""
    return re.sub(r"[%,()*]", "", term).strip()[:max_length]


def safe_filename(filename: str | None, fallback: str = "file") -> str:
    name = (filename or "").rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or fallback
