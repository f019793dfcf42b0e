"""
Removes bytes under the uploads directory that no metadata record points to.

The metadata document is only read, never changed.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import List

from services.file_store import FileStore
from services.storage_paths import StoragePaths, UPLOADS_DIRNAME

logger = logging.getLogger("drive_clone.cleanup")


@dataclass
class OrphanEntry:
    path: str  # "uploads/<relative>", comparable with record paths
    full_path: str
    kind: str  # "file" or "folder"
    depth: int


@dataclass
class CleanupReport:
    scanned: int = 0
    orphans: List[OrphanEntry] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def scan_uploads(uploads_dir: str) -> List[OrphanEntry]:
    """Every file and directory below uploads_dir, as store-style relative paths."""
    entries = []
    for current, dirnames, filenames in os.walk(uploads_dir):
        relative_dir = os.path.relpath(current, uploads_dir)
        prefix = "" if relative_dir == "." else relative_dir.replace(os.sep, "/") + "/"
        for kind, names in (("folder", dirnames), ("file", filenames)):
            for name in names:
                relative = prefix + name
                entries.append(OrphanEntry(
                    path=f"{UPLOADS_DIRNAME}/{relative}",
                    full_path=os.path.join(current, name),
                    kind=kind,
                    depth=relative.count("/") + 1,
                ))
    return entries


def find_orphans(store: FileStore, paths: StoragePaths) -> CleanupReport:
    known_paths = {record.get("path") for record in store.list_all()}
    entries = scan_uploads(paths.uploads_dir) if os.path.isdir(paths.uploads_dir) else []
    report = CleanupReport(scanned=len(entries))
    report.orphans = [
        entry for entry in entries
        if entry.path not in known_paths and not _holds_tracked_paths(entry, known_paths)
    ]
    return report


def _holds_tracked_paths(entry: OrphanEntry, known_paths) -> bool:
    # An untracked directory that still contains tracked files must survive
    if entry.kind != "folder":
        return False
    prefix = entry.path + "/"
    return any(path and path.startswith(prefix) for path in known_paths)


def cleanup_orphaned_files(store: FileStore, paths: StoragePaths, dry_run: bool = False) -> CleanupReport:
    report = find_orphans(store, paths)
    logger.info(
        "Orphan scan finished",
        extra={"scanned": report.scanned, "orphans": len(report.orphans), "dry_run": dry_run},
    )
    if dry_run:
        return report

    orphan_files = [entry for entry in report.orphans if entry.kind == "file"]
    # Nested folders go before their parents
    orphan_folders = sorted(
        (entry for entry in report.orphans if entry.kind == "folder"),
        key=lambda entry: entry.depth,
        reverse=True,
    )

    for entry in orphan_files + orphan_folders:
        if not os.path.lexists(entry.full_path):
            continue
        try:
            if entry.kind == "folder":
                shutil.rmtree(entry.full_path)
            else:
                os.remove(entry.full_path)
            report.removed.append(entry.path)
        except OSError as e:
            logger.warning("Could not delete orphan", extra={"path": entry.path, "error": str(e)})
            report.failed.append(entry.path)

    logger.info("Orphan cleanup complete", extra={"removed": len(report.removed), "failed": len(report.failed)})
    return report
