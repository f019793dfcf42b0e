"""
File and folder operations on top of FileStore and the uploads directory.

Listing views, uploads, folder creation, the trash lifecycle
(soft delete, restore, delete forever) and storage usage.
"""

import os
import shutil
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from config import config
from services.file_store import FileStore, ids_of
from services.storage_paths import StoragePaths, InvalidName, upload_basename, validate_name
from utils.formatting import (
    FOLDER_SIZE_PLACEHOLDER,
    file_type_for,
    format_file_size,
    format_modified,
    parse_timestamp,
)
from utils.prometheus import FILE_OPERATIONS
from utils.structured_logging import StructuredLogger

FOLDER = "folder"
VIEW_MODES = ("my-drive", "starred", "shared", "recent", "trash")
UPLOAD_CHUNK_SIZE = 1024 * 1024


class FileServiceError(Exception):
    pass


class FileNotFound(FileServiceError):
    pass


class InvalidRequest(FileServiceError):
    pass


class DuplicateName(InvalidRequest):
    pass


class NotInTrash(InvalidRequest):
    pass


class FolderDownload(InvalidRequest):
    pass


class UploadTooLarge(FileServiceError):
    pass


def _sort_key(record: Dict[str, Any]):
    return (parse_timestamp(record.get("modified_at")), record["id"])


def sort_for_listing(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Folders first, then newest modification first."""
    newest_first = sorted(records, key=_sort_key, reverse=True)
    return [r for r in newest_first if r.get("type") == FOLDER] + \
           [r for r in newest_first if r.get("type") != FOLDER]


def format_record(record: Dict[str, Any]) -> Dict[str, Any]:
    is_folder = record.get("type") == FOLDER
    return {
        "id": record["id"],
        "name": record.get("name"),
        "type": record.get("type"),
        "size": FOLDER_SIZE_PLACEHOLDER if is_folder else format_file_size(record.get("size")),
        "modified": format_modified(record.get("modified_at")),
        "owner": record.get("owner") or config.DEFAULT_OWNER,
        "starred": bool(record.get("starred")),
        "shared": bool(record.get("shared")),
        "path": record.get("path"),
        "parentFolderId": record.get("parent_folder_id"),
    }


class FileService:
    def __init__(
        self,
        store: FileStore,
        storage_root: str,
        owner: Optional[str] = None,
        max_upload_bytes: Optional[int] = None,
        quota_bytes: Optional[int] = None,
        recent_limit: Optional[int] = None,
    ):
        self.store = store
        self.paths = StoragePaths(storage_root)
        self.owner = owner or config.DEFAULT_OWNER
        self.max_upload_bytes = max_upload_bytes or config.MAX_UPLOAD_BYTES
        self.quota_bytes = quota_bytes or config.STORAGE_QUOTA_BYTES
        self.recent_limit = recent_limit or config.RECENT_FILES_LIMIT
        self.log = StructuredLogger(
            service="files", logger_name="drive_clone.files", storage_root=self.paths.storage_root
        )

    def _count(self, operation: str, status: str = "success") -> None:
        FILE_OPERATIONS.labels(operation=operation, status=status).inc()

    def _get_or_404(self, file_id: int) -> Dict[str, Any]:
        record = self.store.get(file_id)
        if record is None:
            raise FileNotFound("File not found")
        return record

    def _resolve_parent(self, parent_folder_id: Optional[int], action: str) -> Optional[Dict[str, Any]]:
        """
        The folder new entries go into. A parent that is missing, in trash, or
        not a folder falls back to the root, both on disk and in the metadata.
        """
        if parent_folder_id is None:
            return None
        parent = self.store.get(parent_folder_id)
        if parent is None or parent.get("type") != FOLDER or parent.get("deleted"):
            self.log.warning(
                action=action,
                status="fallback_to_root",
                message="Parent folder not usable, storing at root",
                parent_folder_id=parent_folder_id,
            )
            return None
        return parent

    # --- listing ---

    def list_files(
        self,
        view_mode: str = "my-drive",
        parent_folder_id: Optional[int] = None,
        starred: bool = False,
    ) -> List[Dict[str, Any]]:
        if view_mode not in VIEW_MODES:
            raise InvalidRequest(f"Invalid viewMode. Allowed: {list(VIEW_MODES)}")

        if view_mode == "trash":
            records = [r for r in self.store.list_all() if r["deleted"]]
        elif view_mode == "shared":
            records = [r for r in self.store.list_all() if r["shared"] and not r["deleted"]]
        elif view_mode == "recent":
            records = [r for r in self.store.list_all() if not r["deleted"]]
            records = sorted(records, key=_sort_key, reverse=True)[:self.recent_limit]
            return [format_record(r) for r in records]
        elif starred or view_mode == "starred":
            records = [r for r in self.store.list_all() if r["starred"] and not r["deleted"]]
        else:
            records = [r for r in self.store.get_all(parent_folder_id) if not r["deleted"]]

        return [format_record(r) for r in sort_for_listing(records)]

    # --- creation ---

    def create_folder(self, name: Optional[str], parent_folder_id: Optional[int] = None) -> Dict[str, Any]:
        folder_name = validate_name(name, kind="Folder")
        parent = self._resolve_parent(parent_folder_id, action="create_folder")
        parent_id = parent["id"] if parent else None

        if self.store.exists(folder_name, parent_id):
            self._count("create_folder", "duplicate")
            raise DuplicateName("Folder with this name already exists")

        relative_path = self.paths.relative_for(parent, folder_name)
        directory = self.paths.absolute(relative_path)
        created_directory = not os.path.isdir(directory)
        os.makedirs(directory, exist_ok=True)

        try:
            folder_id = self.store.insert({
                "name": folder_name,
                "type": FOLDER,
                "size": 0,
                "path": relative_path,
                "parent_folder_id": parent_id,
                "starred": False,
                "deleted": False,
                "shared": False,
                "owner": self.owner,
            })
        except Exception as e:
            if created_directory:
                os.rmdir(directory)
            self._count("create_folder", "error")
            self.log.error(action="create_folder", message=f"Creating folder {folder_name} failed", error=e,
                           parent_folder_id=parent_id)
            raise

        self._count("create_folder")
        self.log.info(
            action="create_folder",
            message=f"Created folder {folder_name}",
            file_id=folder_id,
            parent_folder_id=parent_id,
        )
        return {
            "id": folder_id,
            "name": folder_name,
            "type": FOLDER,
            "size": FOLDER_SIZE_PLACEHOLDER,
            "path": relative_path,
            "parentFolderId": parent_id,
            "message": "Folder created successfully",
        }

    def upload(self, filename: Optional[str], stream: BinaryIO, parent_folder_id: Optional[int] = None) -> Dict[str, Any]:
        original_name = upload_basename(filename)
        parent = self._resolve_parent(parent_folder_id, action="upload")
        parent_id = parent["id"] if parent else None

        directory = self.paths.directory_for(parent)
        os.makedirs(directory, exist_ok=True)

        sibling_names = {r.get("name") for r in self.store.get_all(parent_id)}
        destination, stored_name = self._claim_destination(directory, original_name, sibling_names)

        try:
            size = self._write_stream(stream, destination)
            file_type = file_type_for(stored_name)
            relative_path = self.paths.relative_for(parent, stored_name)
            file_id = self.store.insert({
                "name": stored_name,
                "type": file_type,
                "size": size,
                "path": relative_path,
                "parent_folder_id": parent_id,
                "starred": False,
                "deleted": False,
                "shared": False,
                "owner": self.owner,
            })
        except Exception as e:
            if os.path.exists(destination):
                os.remove(destination)
            self._count("upload", "error")
            self.log.error(action="upload", message=f"Upload of {original_name} failed", error=e,
                           parent_folder_id=parent_id)
            raise

        self._count("upload")
        self.log.info(
            action="upload",
            message=f"Stored {stored_name} at {destination}",
            file_id=file_id,
            parent_folder_id=parent_id,
            size=size,
        )
        return {
            "id": file_id,
            "name": stored_name,
            "type": file_type,
            "size": format_file_size(size),
            "path": relative_path,
            "parentFolderId": parent_id,
            "message": "File uploaded successfully",
        }

    def _claim_destination(self, directory: str, name: str, sibling_names) -> Tuple[str, str]:
        """Create an empty file under the first free name and return (path, name)."""
        while True:
            candidate = self.paths.unique_name(directory, name, taken=sibling_names.__contains__)
            destination = os.path.join(directory, candidate)
            try:
                with open(destination, "xb"):
                    pass
                return destination, candidate
            except FileExistsError:
                # Another upload took the name between the check and the create
                continue

    def _write_stream(self, stream: BinaryIO, destination: str) -> int:
        size = 0
        with open(destination, "wb") as out:
            while True:
                chunk = stream.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_upload_bytes:
                    raise UploadTooLarge(
                        f"File exceeds the upload limit of {format_file_size(self.max_upload_bytes)}"
                    )
                out.write(chunk)
        return size

    # --- trash lifecycle ---

    def soft_delete(self, file_id: int) -> int:
        """Move a record (and a folder's whole subtree) to trash. Returns how many records were marked."""
        record = self._get_or_404(file_id)

        ids = [file_id]
        if record.get("type") == FOLDER:
            ids += ids_of(self.store.descendants(file_id))

        self.store.update_many({record_id: {"deleted": True} for record_id in ids})

        self._count("soft_delete")
        self.log.info(
            action="soft_delete",
            message=f"Moved {record.get('type')} {record.get('name')} to trash with {len(ids) - 1} children",
            file_id=file_id,
            parent_folder_id=record.get("parent_folder_id"),
        )
        return len(ids)

    def restore(self, file_id: int) -> int:
        """
        Take a record and its subtree out of trash. When the original parent
        is gone or still in trash, the record is moved to the root, bytes
        included.
        """
        record = self._get_or_404(file_id)
        if not record.get("deleted"):
            raise NotInTrash("File is not in trash")

        descendants = self.store.descendants(file_id) if record.get("type") == FOLDER else []
        changes: Dict[int, Dict[str, Any]] = {file_id: {"deleted": False}}
        for child in descendants:
            changes[child["id"]] = {"deleted": False}

        moved_from = moved_to = None
        parent_id = record.get("parent_folder_id")
        if parent_id is not None:
            parent = self.store.get(parent_id)
            if parent is None or parent.get("deleted"):
                moved_from, moved_to = self._move_to_root(record, descendants, changes)

        try:
            self.store.update_many(changes)
        except Exception:
            if moved_from:
                shutil.move(moved_to, moved_from)
            raise

        self._count("restore")
        self.log.info(
            action="restore",
            message=f"Restored {record.get('name')} with {len(descendants)} children",
            file_id=file_id,
            parent_folder_id=changes[file_id].get("parent_folder_id", parent_id),
        )
        return len(changes)

    def _move_to_root(self, record, descendants, changes) -> Tuple[Optional[str], Optional[str]]:
        name = record.get("name")
        if self.store.exists(name, None, exclude_id=record["id"]):
            raise DuplicateName(f"An item named '{name}' already exists in My Drive")

        old_prefix = record.get("path")
        new_prefix = self.paths.relative_for(None, name)
        source = self.paths.absolute(old_prefix)
        target = self.paths.absolute(new_prefix)

        # Untracked bytes at the destination block the move too
        if target != source and os.path.exists(target):
            raise DuplicateName(f"An item named '{name}' already exists in My Drive")

        moved = False
        if os.path.exists(source):
            self.paths.ensure_uploads_dir()
            shutil.move(source, target)
            moved = True

        changes[record["id"]].update({"parent_folder_id": None, "path": new_prefix})
        for child in descendants:
            child_path = child.get("path") or ""
            if child_path.startswith(old_prefix + "/"):
                changes[child["id"]]["path"] = new_prefix + child_path[len(old_prefix):]

        self.log.warning(
            action="restore",
            status="moved_to_root",
            message=f"Original folder of {name} is unavailable, restoring to My Drive",
            file_id=record["id"],
        )
        return (source, target) if moved else (None, None)

    def delete_forever(self, file_id: int) -> int:
        record = self._get_or_404(file_id)
        if not record.get("deleted"):
            raise NotInTrash("Only items in trash can be deleted forever")

        removed = self.store.delete(file_id)
        self._remove_from_disk(removed)

        self._count("delete_forever")
        self.log.info(
            action="delete_forever",
            message=f"Permanently deleted {record.get('name')} and {len(removed) - 1} children",
            file_id=file_id,
            parent_folder_id=record.get("parent_folder_id"),
        )
        return len(removed)

    def empty_trash(self) -> int:
        trashed = [record for record in self.store.list_all() if record["deleted"]]
        # Single write for all records; bytes are removed only once it succeeded
        removed = self.store.delete_many(ids_of(trashed))

        self._remove_from_disk(removed)
        self._count("empty_trash")
        self.log.info(action="empty_trash", message=f"Emptied trash, {len(removed)} records removed")
        return len(removed)

    def _remove_from_disk(self, records: List[Dict[str, Any]]) -> None:
        """Files first, then folders deepest first. Leftovers are reported, the cleanup job reclaims them."""
        files = [r for r in records if r.get("type") != FOLDER]
        folders = sorted(
            (r for r in records if r.get("type") == FOLDER),
            key=lambda r: (r.get("path") or "").count("/"),
            reverse=True,
        )
        for record in files + folders:
            if not record.get("path"):
                continue
            try:
                target = self.paths.absolute(record["path"])
                if os.path.isdir(target):
                    shutil.rmtree(target)
                elif os.path.exists(target):
                    os.remove(target)
            except (OSError, InvalidName) as e:
                self.log.error(
                    action="remove_bytes",
                    message=f"Could not remove {record['path']}, left for orphan cleanup",
                    error=e,
                    file_id=record["id"],
                )

    # --- misc ---

    def toggle_star(self, file_id: int) -> bool:
        record = self._get_or_404(file_id)
        starred = not record.get("starred")
        self.store.update(file_id, {"starred": starred})
        self._count("toggle_star")
        return starred

    def storage_usage(self) -> Dict[str, Any]:
        # Trashed files included
        used = sum(r.get("size") or 0 for r in self.store.list_all() if r.get("type") != FOLDER)
        percentage = used / self.quota_bytes * 100
        return {
            "used": used,
            "total": self.quota_bytes,
            "usedFormatted": format_file_size(used),
            "totalFormatted": format_file_size(self.quota_bytes),
            "percentage": min(percentage, 100),
        }

    def download_target(self, file_id: int) -> Tuple[str, str]:
        """(absolute path, download name) for a stored file."""
        record = self._get_or_404(file_id)
        if record.get("type") == FOLDER:
            raise FolderDownload("Cannot download a folder")

        path = self.paths.absolute(record.get("path") or "")
        if not os.path.isfile(path):
            raise FileNotFound("File not found on disk")
        return path, record.get("name")
