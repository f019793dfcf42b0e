"""Prometheus metrics shared by the store and the file handlers."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

FILE_OPERATIONS = Counter(
    "drive_file_operations_total",
    "File and folder operations handled by the API",
    ["operation", "status"],
)

STORE_WRITES = Counter(
    "drive_store_writes_total",
    "Whole-document writes performed by the metadata store",
    ["backend"],
)

STORE_WRITE_SECONDS = Histogram(
    "drive_store_write_seconds",
    "Time spent serializing and persisting the metadata document",
    ["backend"],
)

__all__ = [
    "CONTENT_TYPE_LATEST",
    "REGISTRY",
    "FILE_OPERATIONS",
    "STORE_WRITES",
    "STORE_WRITE_SECONDS",
    "generate_latest",
]
