import json
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
import models
from services.file_store import FileStore, StoreCorruptedError
from services.store_backends import JsonFileBackend, MemoryBackend, SqlDocumentBackend


class TestJsonFileBackend:
    def test_missing_file_reads_as_none(self, tmp_path):
        backend = JsonFileBackend(str(tmp_path / "database.json"))
        assert backend.read() is None

    def test_write_creates_directory_and_document(self, tmp_path):
        path = tmp_path / "nested" / "database.json"
        backend = JsonFileBackend(str(path))

        backend.write({"files": [], "nextId": 1})

        with open(path) as f:
            assert json.load(f) == {"files": [], "nextId": 1}
        # no temporary files left behind
        assert os.listdir(path.parent) == ["database.json"]

    def test_invalid_json_raises_corruption(self, tmp_path):
        path = tmp_path / "database.json"
        path.write_text("{not json")

        with pytest.raises(StoreCorruptedError):
            JsonFileBackend(str(path)).read()

    def test_store_round_trip_through_file(self, tmp_path):
        path = str(tmp_path / "database.json")
        FileStore(JsonFileBackend(path)).insert(
            {"name": "a.txt", "type": "document", "size": 3, "path": "uploads/a.txt", "parent_folder_id": None}
        )

        # a fresh store on the same file sees the record
        record = FileStore(JsonFileBackend(path)).get(1)
        assert record["name"] == "a.txt"

        with open(path) as f:
            raw = json.load(f)
        assert raw["nextId"] == 2
        assert raw["files"][0]["deleted"] == 0


class TestMemoryBackend:
    def test_reads_are_copies(self):
        backend = MemoryBackend({"files": [], "nextId": 1})
        document = backend.read()
        document["files"].append({"id": 1})

        assert backend.read() == {"files": [], "nextId": 1}

    def test_counts_writes(self):
        backend = MemoryBackend()
        backend.write({"files": [], "nextId": 1})
        backend.write({"files": [], "nextId": 1})
        assert backend.writes == 2


class TestSqlDocumentBackend:
    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'store.db'}", connect_args={"check_same_thread": False})
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
        engine.dispose()

    def test_empty_table_reads_as_none(self, session_factory):
        assert SqlDocumentBackend(session_factory).read() is None

    def test_write_then_update_single_row(self, session_factory):
        backend = SqlDocumentBackend(session_factory)
        backend.write({"files": [], "nextId": 1})
        backend.write({"files": [], "nextId": 5})

        assert backend.read() == {"files": [], "nextId": 5}

        db = session_factory()
        try:
            assert db.query(models.DriveDocument).count() == 1
        finally:
            db.close()

    def test_store_on_sql_backend(self, session_factory):
        store = FileStore(SqlDocumentBackend(session_factory))
        docs = store.insert({"name": "Docs", "type": "folder", "size": 0, "path": "uploads/Docs"})
        store.insert({"name": "a.txt", "type": "document", "size": 1, "path": "uploads/Docs/a.txt",
                      "parent_folder_id": docs})

        assert [r["name"] for r in store.get_all(docs)] == ["a.txt"]

    def test_documents_are_kept_apart_by_name(self, session_factory):
        SqlDocumentBackend(session_factory, document_name="files").write({"files": [], "nextId": 1})
        assert SqlDocumentBackend(session_factory, document_name="other").read() is None

    def test_invalid_payload_raises_corruption(self, session_factory):
        db = session_factory()
        db.add(models.DriveDocument(name="files", payload="{broken"))
        db.commit()
        db.close()

        with pytest.raises(StoreCorruptedError):
            SqlDocumentBackend(session_factory).read()
