import re
from typing import Optional

from app.config import settings

_ABSOLUTE = re.compile(r"^https?://", re.IGNORECASE)


def to_full_url(value: Optional[str]) -> Optional[str]:
    """Turn an upload-relative path into an absolute backend URL."""
    if not value:
        return value
    if _ABSOLUTE.match(value):
        return value
    return f"{settings.BACKEND_URL.rstrip('/')}/{value.lstrip('/')}"


def safe_filename(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    safe = re.sub(r"[^a-zA-Z0-9.\-_]", "", name)
    return safe or None
