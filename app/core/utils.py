"""Shared utility functions."""

import re
from datetime import datetime, timezone

_UNSAFE_FILENAME_CHARS = re.compile(r"[^0-9A-Za-zğüşıöçĞÜŞİÖÇ\s-]")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention of the models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def safe_filename_part(value: str) -> str:
    """Strip characters that are unsafe in a download filename and join words with '_'."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", value or "").strip()
    return re.sub(r"\s+", "_", cleaned) or "student"
