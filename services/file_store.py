"""
Metadata store for files and folders.

The whole state is one JSON-compatible document::

    {"files": [<record>, ...], "nextId": <int>}

Every operation loads the document through the injected backend, mutates an
in-memory copy and writes the whole document back. There is no locking: two
concurrent writers race and the last write wins.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from utils.prometheus import STORE_WRITES, STORE_WRITE_SECONDS

logger = logging.getLogger("drive_clone.store")

FLAG_FIELDS = ("starred", "deleted", "shared")
# Fields a patch can never change
PROTECTED_FIELDS = ("id", "created_at")


class StoreError(Exception):
    """Base class for metadata store failures."""


class StoreCorruptedError(StoreError):
    """The persisted document cannot be parsed or has the wrong shape."""


class HierarchyCycleError(StoreError):
    """parent_folder_id links loop back on themselves."""


class InvalidFlagValue(ValueError):
    """A boolean flag was given in a representation the store does not accept."""


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-10-19T08:15:00.123Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_flag(value: Any, field: str = "flag") -> bool:
    """
    Normalize a stored flag to bool.

    Documents written by older versions hold 0/1, "0"/"1" or JSON booleans.
    A missing flag is False. Anything else is rejected.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return value == 1
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true"):
            return True
        if lowered in ("0", "false"):
            return False
    raise InvalidFlagValue(f"Invalid value for '{field}': {value!r}")


class FileStore:
    def __init__(self, backend, clock: Optional[Callable[[], str]] = None):
        self.backend = backend
        self._clock = clock or utc_timestamp

    # --- document I/O ---

    def _load(self) -> Dict[str, Any]:
        document = self.backend.read()
        if document is None:
            return {"files": [], "nextId": 1}

        if not isinstance(document, dict) or not isinstance(document.get("files"), list):
            raise StoreCorruptedError("Metadata document must be an object with a 'files' list")

        files = [self._load_record(raw) for raw in document["files"]]

        # nextId must stay ahead of every id ever handed out
        highest = max((record["id"] for record in files), default=0)
        next_id = document.get("nextId")
        if not isinstance(next_id, int) or isinstance(next_id, bool) or next_id <= highest:
            if next_id is not None:
                logger.warning(
                    "Metadata document nextId is behind stored ids, repairing",
                    extra={"next_id": next_id, "highest_id": highest},
                )
            next_id = highest + 1

        return {"files": files, "nextId": next_id}

    def _save(self, document: Dict[str, Any]) -> None:
        backend_name = getattr(self.backend, "name", type(self.backend).__name__)
        serialized = {
            "files": [self._dump_record(record) for record in document["files"]],
            "nextId": document["nextId"],
        }
        with STORE_WRITE_SECONDS.labels(backend=backend_name).time():
            self.backend.write(serialized)
        STORE_WRITES.labels(backend=backend_name).inc()

    @staticmethod
    def _load_record(raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise StoreCorruptedError(f"Record is not an object: {raw!r}")
        record_id = raw.get("id")
        if not isinstance(record_id, int) or isinstance(record_id, bool):
            raise StoreCorruptedError(f"Record has no integer id: {raw!r}")

        record = dict(raw)
        record.setdefault("parent_folder_id", None)
        for field in FLAG_FIELDS:
            record[field] = normalize_flag(raw.get(field), field)
        return record

    @staticmethod
    def _dump_record(record: Dict[str, Any]) -> Dict[str, Any]:
        dumped = dict(record)
        for field in FLAG_FIELDS:
            dumped[field] = 1 if record.get(field) else 0
        return dumped

    @staticmethod
    def _normalize_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
        normalized = {key: value for key, value in patch.items() if key not in PROTECTED_FIELDS}
        for field in FLAG_FIELDS:
            if field in normalized:
                normalized[field] = normalize_flag(normalized[field], field)
        return normalized

    @staticmethod
    def _collect_descendants(files: List[Dict[str, Any]], root_id: int) -> List[Dict[str, Any]]:
        children_by_parent: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for record in files:
            if record.get("parent_folder_id") is not None:
                children_by_parent[record["parent_folder_id"]].append(record)

        visited = {root_id}
        found = []
        stack = [root_id]
        while stack:
            current = stack.pop()
            for child in children_by_parent.get(current, []):
                if child["id"] in visited:
                    raise HierarchyCycleError(
                        f"Record {child['id']} is reachable twice below {root_id}; parent links form a cycle"
                    )
                visited.add(child["id"])
                found.append(child)
                stack.append(child["id"])
        return found

    # --- queries ---

    def list_all(self) -> List[Dict[str, Any]]:
        return self._load()["files"]

    def get_all(self, parent_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Records directly inside parent_id (None = root). Deleted records are included."""
        return [record for record in self._load()["files"] if record.get("parent_folder_id") == parent_id]

    def get(self, record_id: int) -> Optional[Dict[str, Any]]:
        for record in self._load()["files"]:
            if record["id"] == record_id:
                return record
        return None

    def exists(self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None) -> bool:
        return any(
            record.get("name") == name
            and record.get("parent_folder_id") == parent_id
            and record["id"] != exclude_id
            for record in self._load()["files"]
        )

    def descendants(self, record_id: int) -> List[Dict[str, Any]]:
        """All transitive children of record_id, parents before their children."""
        files = self._load()["files"]
        if not any(record["id"] == record_id for record in files):
            return []
        return self._collect_descendants(files, record_id)

    # --- writes ---

    def insert(self, record: Dict[str, Any]) -> int:
        document = self._load()
        new_id = document["nextId"]
        now = self._clock()

        new_record = self._normalize_patch(record)
        new_record.setdefault("parent_folder_id", None)
        for field in FLAG_FIELDS:
            new_record.setdefault(field, False)
        new_record.update({"id": new_id, "created_at": now, "modified_at": now})

        document["files"].append(new_record)
        document["nextId"] = new_id + 1
        self._save(document)
        return new_id

    def update(self, record_id: int, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        updated = self.update_many({record_id: patch})
        return updated[0] if updated else None

    def update_many(self, changes: Dict[int, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Apply a patch per record id in a single persisted write.

        Unknown ids are skipped. Returns the updated records. Nothing is
        written when no id matches.
        """
        normalized = {record_id: self._normalize_patch(patch) for record_id, patch in changes.items()}
        document = self._load()
        now = self._clock()

        updated = []
        for record in document["files"]:
            patch = normalized.get(record["id"])
            if patch is None:
                continue
            record.update(patch)
            record["modified_at"] = now
            updated.append(record)

        if updated:
            self._save(document)
        return updated

    def delete(self, record_id: int) -> List[Dict[str, Any]]:
        """
        Hard delete a record and every descendant in one write.

        Returns the removed records, the requested record first.
        """
        return self.delete_many([record_id])

    def delete_many(self, record_ids: Iterable[int]) -> List[Dict[str, Any]]:
        """
        Hard delete several records and all their descendants in one write.

        Unknown ids are skipped and nothing is written when none match.
        Each requested record comes before its own descendants in the result.
        """
        document = self._load()
        files = document["files"]
        by_id = {record["id"]: record for record in files}

        removed: List[Dict[str, Any]] = []
        removed_ids = set()
        for record_id in record_ids:
            if record_id in removed_ids or record_id not in by_id:
                continue
            for record in [by_id[record_id]] + self._collect_descendants(files, record_id):
                if record["id"] not in removed_ids:
                    removed_ids.add(record["id"])
                    removed.append(record)

        if removed:
            document["files"] = [record for record in files if record["id"] not in removed_ids]
            self._save(document)
        return removed


def ids_of(records: Iterable[Dict[str, Any]]) -> List[int]:
    return [record["id"] for record in records]
