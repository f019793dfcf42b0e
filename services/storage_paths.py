"""
Maps the logical folder tree onto the uploads directory.

Record paths are stored relative to the storage root and always start with
``uploads/``; a folder "Reports" inside "Work" lives at
``uploads/Work/Reports``.
"""

import os
from typing import Any, Callable, Dict, Optional

UPLOADS_DIRNAME = "uploads"

_FORBIDDEN_CHARACTERS = ("/", "\\", "\x00")


class InvalidName(ValueError):
    pass


def validate_name(name: Optional[str], kind: str = "File") -> str:
    """Strip a file or folder name and reject names that cannot be a single path segment."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidName(f"{kind} name is required")
    if cleaned in (".", ".."):
        raise InvalidName(f"{kind} name '{cleaned}' is not allowed")
    if any(character in cleaned for character in _FORBIDDEN_CHARACTERS):
        raise InvalidName(f"{kind} name cannot contain '/', '\\' or NUL characters")
    return cleaned


def upload_basename(filename: Optional[str]) -> str:
    """Browsers may send a full client path; only the last segment is kept."""
    raw = (filename or "").replace("\\", "/").split("/")[-1]
    return validate_name(raw, kind="File")


def numbered_name(name: str, counter: int) -> str:
    """'report.pdf', 2 -> 'report (2).pdf'; 'README', 1 -> 'README (1)'"""
    stem, extension = os.path.splitext(name)
    return f"{stem} ({counter}){extension}"


class StoragePaths:
    def __init__(self, storage_root: str):
        self.storage_root = os.path.abspath(storage_root)
        self.uploads_dir = os.path.join(self.storage_root, UPLOADS_DIRNAME)

    def ensure_uploads_dir(self) -> str:
        os.makedirs(self.uploads_dir, exist_ok=True)
        return self.uploads_dir

    def relative_for(self, parent: Optional[Dict[str, Any]], name: str) -> str:
        base = parent["path"] if parent else UPLOADS_DIRNAME
        return f"{base}/{name}"

    def absolute(self, relative_path: str) -> str:
        """Resolve a stored relative path, refusing anything that escapes the storage root."""
        candidate = os.path.abspath(os.path.join(self.storage_root, relative_path))
        if candidate != self.storage_root and not candidate.startswith(self.storage_root + os.sep):
            raise InvalidName(f"Path '{relative_path}' points outside the storage root")
        return candidate

    def relative(self, absolute_path: str) -> str:
        return os.path.relpath(absolute_path, self.storage_root).replace(os.sep, "/")

    def directory_for(self, parent: Optional[Dict[str, Any]]) -> str:
        """On-disk directory for new children of parent (root uploads dir when parent is None)."""
        if parent is None:
            return self.uploads_dir
        return self.absolute(parent["path"])

    def unique_name(
        self,
        directory: str,
        name: str,
        taken: Optional[Callable[[str], bool]] = None,
    ) -> str:
        """
        First free variant of name inside directory: name, 'stem (1).ext', 'stem (2).ext', ...

        A candidate is free when nothing exists on disk and taken(candidate)
        is false. Nothing is reserved, so two callers can get the same answer.
        """
        candidate = name
        counter = 1
        while os.path.exists(os.path.join(directory, candidate)) or (taken and taken(candidate)):
            candidate = numbered_name(name, counter)
            counter += 1
        return candidate
