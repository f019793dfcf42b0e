from contextlib import contextmanager
from typing import List, Literal, Optional, Union
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from cache import cache_service, list_cache_key
from config import config
from schemas.files import (
    CreatedItemResponse,
    CreateFolderRequest,
    DeleteResponse,
    FileListItem,
    PurgeResponse,
    RestoreResponse,
    StarResponse,
    StorageResponse,
)
from services.file_service import (
    FileNotFound,
    FileService,
    InvalidRequest,
    UploadTooLarge,
)
from services.storage_paths import InvalidName
from services.store_backends import create_store

logger = logging.getLogger("drive_clone.api")

router = APIRouter(tags=["files"])


def get_file_service() -> FileService:
    return FileService(create_store(), config.STORAGE_ROOT)


@contextmanager
def _api_errors(action: str, failure_message: str):
    """Translate service exceptions into HTTP errors; anything unexpected becomes a logged 500."""
    try:
        yield
    except HTTPException:
        raise
    except FileNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UploadTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))
    except (InvalidRequest, InvalidName) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Unexpected error during {action}", extra={"action": action})
        raise HTTPException(status_code=500, detail=failure_message)


def _parse_folder_id(value: Optional[Union[int, str]]) -> Optional[int]:
    """Folder ids arrive as query/form strings or JSON numbers; empty and 0 mean the root."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise HTTPException(status_code=400, detail="Invalid parentFolderId")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid parentFolderId")
    return parsed or None


@router.get("/files", response_model=List[FileListItem])
def list_files(
    parent_folder_id: Optional[str] = Query(None, alias="parentFolderId", description="Folder to list (My Drive view)"),
    starred: bool = Query(False, description="Show starred items from every folder"),
    view_mode: Literal["my-drive", "starred", "shared", "recent", "trash"] = Query("my-drive", alias="viewMode"),
    service: FileService = Depends(get_file_service),
):
    parent_id = _parse_folder_id(parent_folder_id)

    cache_key = list_cache_key(view_mode, parent_id, starred)
    cached = cache_service.get_from_cache(cache_key)
    if cached is not None:
        return cached

    with _api_errors("list_files", "Failed to fetch files"):
        files = service.list_files(view_mode=view_mode, parent_folder_id=parent_id, starred=starred)

    cache_service.set_in_cache(cache_key, files)
    return files


@router.post("/files/upload", response_model=CreatedItemResponse)
def upload_file(
    file: Optional[UploadFile] = File(None),
    parent_folder_id: Optional[str] = Form(None, alias="parentFolderId"),
    service: FileService = Depends(get_file_service),
):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    parent_id = _parse_folder_id(parent_folder_id)
    with _api_errors("upload_file", "Failed to upload file"):
        result = service.upload(file.filename, file.file, parent_folder_id=parent_id)

    cache_service.invalidate_listings()
    return result


@router.post("/folders", response_model=CreatedItemResponse)
def create_folder(
    request: CreateFolderRequest,
    service: FileService = Depends(get_file_service),
):
    parent_id = _parse_folder_id(request.parentFolderId)
    with _api_errors("create_folder", "Failed to create folder"):
        result = service.create_folder(request.name, parent_folder_id=parent_id)

    cache_service.invalidate_listings()
    return result


@router.delete("/files/{file_id}", response_model=DeleteResponse)
def delete_file(file_id: int, service: FileService = Depends(get_file_service)):
    """Soft delete: the item and, for folders, everything below it moves to trash."""
    with _api_errors("delete_file", "Failed to delete file"):
        count = service.soft_delete(file_id)

    cache_service.invalidate_listings()
    return {"message": "File moved to trash successfully", "deletedCount": count}


@router.put("/files/{file_id}/restore", response_model=RestoreResponse)
def restore_file(file_id: int, service: FileService = Depends(get_file_service)):
    with _api_errors("restore_file", "Failed to restore file"):
        count = service.restore(file_id)

    cache_service.invalidate_listings()
    return {"message": "File restored successfully", "restoredCount": count}


@router.delete("/files/{file_id}/permanent", response_model=PurgeResponse)
def delete_file_forever(file_id: int, service: FileService = Depends(get_file_service)):
    with _api_errors("delete_file_forever", "Failed to delete file permanently"):
        count = service.delete_forever(file_id)

    cache_service.invalidate_listings()
    return {"message": "File deleted forever", "removedCount": count}


@router.delete("/trash", response_model=PurgeResponse)
def empty_trash(service: FileService = Depends(get_file_service)):
    with _api_errors("empty_trash", "Failed to empty trash"):
        count = service.empty_trash()

    cache_service.invalidate_listings()
    return {"message": "Trash emptied", "removedCount": count}


@router.put("/files/{file_id}/star", response_model=StarResponse)
def toggle_star(file_id: int, service: FileService = Depends(get_file_service)):
    with _api_errors("toggle_star", "Failed to toggle star"):
        starred = service.toggle_star(file_id)

    cache_service.invalidate_listings()
    return {"starred": starred}


@router.get("/storage", response_model=StorageResponse)
def storage_usage(service: FileService = Depends(get_file_service)):
    with _api_errors("storage_usage", "Failed to calculate storage"):
        return service.storage_usage()


@router.get("/files/{file_id}/download")
def download_file(file_id: int, service: FileService = Depends(get_file_service)):
    with _api_errors("download_file", "Failed to download file"):
        path, name = service.download_target(file_id)
    return FileResponse(path, filename=name)
