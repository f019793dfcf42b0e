from fastapi.testclient import TestClient

from main import app
from routers.files import get_file_service
from services.file_service import FileService
from services.file_store import FileStore
from services.store_backends import MemoryBackend


def _health_with(service):
    app.dependency_overrides[get_file_service] = lambda: service
    try:
        response = TestClient(app).get("/health")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 200
    return response.json()


def test_health_is_healthy_with_store_and_uploads_dir(tmp_path):
    service = FileService(FileStore(MemoryBackend()), str(tmp_path))
    service.paths.ensure_uploads_dir()
    service.create_folder("Docs")

    data = _health_with(service)

    assert data["service"] == "drive"
    assert data["status"] == "healthy"
    assert data["store"]["status"] == "ok"
    assert data["store"]["records"] == 1
    assert data["uploads_dir"] == {"exists": True, "writable": True}
    assert data["cache"] == {"enabled": False}
    assert "issues" not in data


def test_missing_uploads_dir_degrades(tmp_path):
    service = FileService(FileStore(MemoryBackend()), str(tmp_path / "nowhere"))

    data = _health_with(service)

    assert data["status"] == "degraded"
    assert data["uploads_dir"]["exists"] is False
    assert any("Uploads directory" in issue for issue in data["issues"])


def test_unreadable_store_is_unhealthy(tmp_path):
    service = FileService(FileStore(MemoryBackend({"files": "not a list"})), str(tmp_path))
    service.paths.ensure_uploads_dir()

    data = _health_with(service)

    assert data["status"] == "unhealthy"
    assert data["store"]["status"] == "error"
    assert data["store"]["error"] == "StoreCorruptedError"
    assert "Metadata store is not readable" in data["issues"]
