import logging

from config import config
from services.storage_paths import StoragePaths
from services.store_backends import create_backend

logger = logging.getLogger("drive_clone.init")

EMPTY_DOCUMENT = {"files": [], "nextId": 1}


def init_db():
    """Create the uploads dir, the SQL table when configured, and an empty metadata document."""
    uploads_dir = StoragePaths(config.STORAGE_ROOT).ensure_uploads_dir()

    if config.STORE_BACKEND == "sql":
        from database import engine, Base
        import models  # registers DriveDocument on Base
        Base.metadata.create_all(bind=engine)

    backend = create_backend()
    if backend.read() is None:
        backend.write(dict(EMPTY_DOCUMENT))
        logger.info("Initialized empty metadata document", extra={"backend": backend.name})

    logger.info("Storage ready", extra={"uploads_dir": uploads_dir, "backend": backend.name})


if __name__ == "__main__":
    import logging_config  # noqa: F401  (configures JSON logging)
    init_db()
    print("Metadata store and uploads directory initialized.")
