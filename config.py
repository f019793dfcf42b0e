import os
from typing import List


BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def normalize_cors_origins(origins_str: str) -> List[str]:
    """
    Normalize a comma-separated string of CORS origins.

    Handles:
    - Trim whitespace from each origin
    - Remove surrounding quotes (" and ')
    - Remove trailing slashes (/)
    - Filter out empty entries

    Args:
        origins_str: Comma-separated string of origins

    Returns:
        List of normalized, non-empty origins
    """
    if not origins_str:
        return []

    normalized = []
    for origin in origins_str.split(","):
        origin = origin.strip()

        if (origin.startswith('"') and origin.endswith('"')) or \
           (origin.startswith("'") and origin.endswith("'")):
            origin = origin[1:-1]

        origin = origin.strip().rstrip("/")

        if origin:
            normalized.append(origin)

    return normalized


class Config:
    # --- METADATA STORE ---
    DATA_DIR = os.getenv("DRIVE_DATA_DIR", os.path.join(BASE_DIR, "data"))
    DATABASE_JSON = os.getenv("DRIVE_DATABASE_JSON", os.path.join(DATA_DIR, "database.json"))
    # "json" keeps the document in DATABASE_JSON, "sql" keeps it in a table reached through DATABASE_URL.
    STORE_BACKEND = os.getenv("STORE_BACKEND", "json").lower()
    DATABASE_URL = os.getenv("DATABASE_URL")

    # --- FILE STORAGE ---
    # Record paths ("uploads/Reports/q1.pdf") are relative to this directory.
    STORAGE_ROOT = os.getenv("DRIVE_STORAGE_ROOT", os.path.join(BASE_DIR, "public"))
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))
    # Display only, nothing is enforced against it.
    STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(15 * 1024 * 1024 * 1024)))
    RECENT_FILES_LIMIT = int(os.getenv("RECENT_FILES_LIMIT", "50"))
    DEFAULT_OWNER = os.getenv("DEFAULT_OWNER", "me")

    # --- REDIS CACHE ---
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_CACHE_ENABLED = os.getenv("REDIS_CACHE_ENABLED", "false").lower() == "true"
    REDIS_DEFAULT_TTL = int(os.getenv("REDIS_DEFAULT_TTL", "60"))

    # --- CORS ---
    # Frontend dev servers
    _DEFAULT_CORS_ORIGINS = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", ",".join(_DEFAULT_CORS_ORIGINS))
    CORS_ORIGIN_REGEX = os.getenv("CORS_ORIGIN_REGEX", None)

    # --- LOGGING ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

config = Config()
