"""
JSON log lines for file and folder operations.

Every line carries service, action, status and message, plus file_id,
parent_folder_id and error_type/error_message when known. Absolute paths under
the storage root are written as <storage>/...
"""

import logging
import json
import os
from datetime import datetime
from typing import Optional


def shorten_path(text: str, storage_root: Optional[str]) -> str:
    """
    Replace an absolute storage root prefix with a relative marker.
    Example: /srv/drive/public/uploads/a.txt -> <storage>/uploads/a.txt
    """
    if not text or not storage_root:
        return text
    root = os.path.abspath(storage_root)
    return text.replace(root + os.sep, "<storage>/").replace(root, "<storage>")


class StructuredLogger:
    def __init__(
        self,
        service: str = "files",
        logger_name: str = "drive_clone.files",
        storage_root: Optional[str] = None,
    ):
        self.service = service
        self.storage_root = storage_root
        self.logger = logging.getLogger(logger_name)

    def _log(
        self,
        level: int,
        action: str,
        status: str,
        message: str,
        file_id: Optional[int] = None,
        parent_folder_id: Optional[int] = None,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None,
        **extra_fields
    ):
        log_data = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "service": self.service,
            "action": action,
            "status": status,
            "message": shorten_path(message, self.storage_root),
        }

        if file_id is not None:
            log_data["file_id"] = file_id
        if parent_folder_id is not None:
            log_data["parent_folder_id"] = parent_folder_id
        if error_type:
            log_data["error_type"] = error_type
        if error_message:
            log_data["error_message"] = shorten_path(error_message, self.storage_root)

        for key, value in extra_fields.items():
            if isinstance(value, str):
                log_data[key] = shorten_path(value, self.storage_root)
            else:
                log_data[key] = value

        self.logger.log(level, json.dumps(log_data, default=str))

    def info(
        self,
        action: str,
        status: str = "success",
        message: str = "",
        file_id: Optional[int] = None,
        parent_folder_id: Optional[int] = None,
        **extra_fields
    ):
        """Successful operation; status defaults to "success"."""
        self._log(
            logging.INFO,
            action=action,
            status=status,
            message=message,
            file_id=file_id,
            parent_folder_id=parent_folder_id,
            **extra_fields
        )

    def warning(
        self,
        action: str,
        status: str = "warning",
        message: str = "",
        file_id: Optional[int] = None,
        parent_folder_id: Optional[int] = None,
        **extra_fields
    ):
        """Degraded but handled, e.g. a parent folder fallback."""
        self._log(
            logging.WARNING,
            action=action,
            status=status,
            message=message,
            file_id=file_id,
            parent_folder_id=parent_folder_id,
            **extra_fields
        )

    def error(
        self,
        action: str,
        message: str,
        error: Optional[Exception] = None,
        file_id: Optional[int] = None,
        parent_folder_id: Optional[int] = None,
        **extra_fields
    ):
        """Failed operation. error, when given, adds error_type and error_message."""
        error_type = None
        error_message = None

        if error:
            error_type = type(error).__name__
            error_message = str(error)

        self._log(
            logging.ERROR,
            action=action,
            status="error",
            message=message,
            file_id=file_id,
            parent_folder_id=parent_folder_id,
            error_type=error_type,
            error_message=error_message,
            **extra_fields
        )
