"""
Persistence backends for FileStore.

A backend only knows how to read and write the whole metadata document:

    read()  -> dict or None when nothing was persisted yet
    write(document) -> None
"""

import copy
import json
import os
import tempfile
from typing import Any, Dict, Optional

from config import config
from services.file_store import FileStore, StoreCorruptedError


class JsonFileBackend:
    name = "json"

    def __init__(self, path: str):
        self.path = path

    def read(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise StoreCorruptedError(f"Metadata document {self.path} is not valid JSON: {e}") from e

    def write(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        # Temp file in the same directory, then an atomic rename
        fd, tmp_path = tempfile.mkstemp(prefix=".database-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class MemoryBackend:
    name = "memory"

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = copy.deepcopy(document)
        self.writes = 0

    def read(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.document)

    def write(self, document: Dict[str, Any]) -> None:
        self.document = copy.deepcopy(document)
        self.writes += 1


class SqlDocumentBackend:
    """Keeps the document as one JSON row of the drive_documents table."""

    name = "sql"

    def __init__(self, session_factory, document_name: str = "files"):
        self.session_factory = session_factory
        self.document_name = document_name

    def read(self) -> Optional[Dict[str, Any]]:
        import models

        db = self.session_factory()
        try:
            row = db.query(models.DriveDocument).filter_by(name=self.document_name).first()
            if row is None:
                return None
            try:
                return json.loads(row.payload)
            except json.JSONDecodeError as e:
                raise StoreCorruptedError(
                    f"Metadata document '{self.document_name}' is not valid JSON: {e}"
                ) from e
        finally:
            db.close()

    def write(self, document: Dict[str, Any]) -> None:
        import models

        payload = json.dumps(document)
        db = self.session_factory()
        try:
            row = db.query(models.DriveDocument).filter_by(name=self.document_name).first()
            if row is None:
                db.add(models.DriveDocument(name=self.document_name, payload=payload))
            else:
                row.payload = payload
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def create_backend():
    """Build the backend selected by STORE_BACKEND."""
    if config.STORE_BACKEND == "sql":
        from database import SessionLocal
        return SqlDocumentBackend(SessionLocal)
    if config.STORE_BACKEND != "json":
        raise ValueError(f"Unknown STORE_BACKEND '{config.STORE_BACKEND}'. Allowed: json, sql")
    return JsonFileBackend(config.DATABASE_JSON)


def create_store() -> FileStore:
    return FileStore(create_backend())
