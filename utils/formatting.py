"""Display helpers for file listings."""

import os
from datetime import datetime, timezone
from typing import Optional

SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]

FILE_TYPES_BY_EXTENSION = {
    "pdf": "pdf",
    "doc": "document",
    "docx": "document",
    "txt": "document",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "ppt": "presentation",
    "pptx": "presentation",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "gif": "image",
}

FOLDER_SIZE_PLACEHOLDER = "—"


def format_file_size(size: Optional[int]) -> str:
    """Human readable size: 0 Bytes, 512 Bytes, 1.5 KB, 2 MB ..."""
    if not size:
        return "0 Bytes"

    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1

    rounded = ("%.2f" % value).rstrip("0").rstrip(".")
    return f"{rounded} {SIZE_UNITS[unit]}"


def file_type_for(filename: str) -> str:
    extension = os.path.splitext(filename)[1].lstrip(".").lower()
    return FILE_TYPES_BY_EXTENSION.get(extension, "file")


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a stored ISO timestamp; missing or malformed values sort as oldest."""
    if not value or not isinstance(value, str):
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_modified(value: Optional[str]) -> str:
    """Short date like 'Oct 19, 2026'."""
    if not value or not isinstance(value, str):
        return ""
    parsed = parse_timestamp(value)
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"
