"""
Health check endpoint for the metadata store, the uploads directory and the cache.
"""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from cache import cache_service
from config import config
from routers.files import get_file_service
from services.file_service import FileService
from utils.structured_logging import StructuredLogger

router = APIRouter(tags=["health"])

health_logger = StructuredLogger(service="health", logger_name="drive_clone.health")


@router.get("/health")
def health_check(service: FileService = Depends(get_file_service)):
    """
    Returns:
        - store: "ok" with the record count, or "error" with the failure
        - uploads_dir: whether the uploads directory exists and is writable
        - cache: enabled / reachable state of the Redis list cache
        - status: healthy, degraded (store fine, something else not) or unhealthy
    """
    now = datetime.now(timezone.utc)
    issues = []

    store_status = {"status": "ok", "backend": config.STORE_BACKEND}
    try:
        store_status["records"] = len(service.store.list_all())
    except Exception as e:
        health_logger.error(action="health_check", message="Metadata store is not readable", error=e)
        store_status = {"status": "error", "backend": config.STORE_BACKEND, "error": type(e).__name__}
        issues.append("Metadata store is not readable")

    uploads_dir = service.paths.uploads_dir
    uploads_exists = os.path.isdir(uploads_dir)
    uploads_writable = uploads_exists and os.access(uploads_dir, os.W_OK)
    if not uploads_writable:
        issues.append("Uploads directory is missing or not writable")

    cache_status = {"enabled": cache_service.enabled}
    if cache_service.enabled:
        cache_status["reachable"] = cache_service.ping()
        if not cache_status["reachable"]:
            issues.append("Redis cache is not reachable")

    if store_status["status"] != "ok":
        status = "unhealthy"
    elif issues:
        status = "degraded"
    else:
        status = "healthy"

    response = {
        "service": "drive",
        "status": status,
        "timestamp": now.isoformat(),
        "store": store_status,
        "uploads_dir": {"exists": uploads_exists, "writable": uploads_writable},
        "cache": cache_status,
    }

    if issues:
        response["issues"] = issues

    return response
