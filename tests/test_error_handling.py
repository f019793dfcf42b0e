"""
Tests that every /api failure comes back as the JSON error envelope
{"error", "code", "message"} with the right status code.
"""

import io

import pytest
from fastapi.testclient import TestClient

from main import app
from routers.files import get_file_service
from services.file_service import FileService
from services.file_store import FileStore
from services.store_backends import JsonFileBackend, MemoryBackend


@pytest.fixture
def service(tmp_path):
    return FileService(FileStore(MemoryBackend()), str(tmp_path / "public"))


@pytest.fixture
def client(service):
    app.dependency_overrides[get_file_service] = lambda: service
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def assert_envelope(response, status_code, code):
    assert response.status_code == status_code
    assert response.headers["content-type"] == "application/json"
    data = response.json()
    assert data["code"] == code
    assert isinstance(data["message"], str)
    assert data["error"] == data["message"]
    return data


def test_not_found_envelope(client):
    assert_envelope(client.delete("/api/files/12345"), 404, "not_found")
    assert_envelope(client.put("/api/files/12345/restore"), 404, "not_found")
    assert_envelope(client.get("/api/files/12345/download"), 404, "not_found")


def test_bad_request_envelope(client):
    data = assert_envelope(client.post("/api/folders", json={"name": "a/b"}), 400, "bad_request")
    assert "cannot contain" in data["message"]


def test_validation_error_lists_details(client):
    data = assert_envelope(client.delete("/api/files/not-a-number"), 422, "validation_error")
    assert data["message"] == "Validation error"
    assert data["details"][0]["loc"][-1] == "file_id"


def test_corrupted_store_is_a_server_error(tmp_path):
    db_path = tmp_path / "database.json"
    db_path.write_text("{this is not json")
    broken = FileService(FileStore(JsonFileBackend(str(db_path))), str(tmp_path / "public"))
    app.dependency_overrides[get_file_service] = lambda: broken
    try:
        client = TestClient(app, raise_server_exceptions=False)
        list_response = client.get("/api/files")
        upload_response = client.post(
            "/api/files/upload",
            files={"file": ("a.txt", io.BytesIO(b"data"), "text/plain")},
        )
    finally:
        app.dependency_overrides.clear()

    data = assert_envelope(list_response, 500, "internal_server_error")
    assert data["message"] == "Failed to fetch files"
    assert_envelope(upload_response, 500, "internal_server_error")

    # the broken document is left alone for an operator to inspect
    assert db_path.read_text() == "{this is not json"


def test_unhandled_exception_outside_endpoint_is_json():
    def exploding_service():
        raise RuntimeError("boom")

    app.dependency_overrides[get_file_service] = exploding_service
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/storage")
    finally:
        app.dependency_overrides.clear()

    data = assert_envelope(response, 500, "internal_server_error")
    assert data["message"] == "An unexpected error occurred"
    assert "boom" not in response.text
