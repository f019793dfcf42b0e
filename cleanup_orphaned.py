"""
Delete files and folders under the uploads directory that no metadata record
points to.

Usage:
    python cleanup_orphaned.py            # delete orphans
    python cleanup_orphaned.py --dry-run  # only list them
"""

import argparse
import sys

import logging_config  # noqa: F401  (configures JSON logging)
from config import config
from services.orphan_cleanup import cleanup_orphaned_files
from services.storage_paths import StoragePaths
from services.store_backends import create_store


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="list orphans without deleting them")
    args = parser.parse_args(argv)

    paths = StoragePaths(config.STORAGE_ROOT)
    report = cleanup_orphaned_files(create_store(), paths, dry_run=args.dry_run)

    print(f"Scanned {report.scanned} items in {paths.uploads_dir}")
    if not report.orphans:
        print("No orphaned files found")
        return 0

    print(f"Found {len(report.orphans)} orphaned items:")
    for entry in report.orphans:
        print(f"  - {entry.path} ({entry.kind})")

    if args.dry_run:
        return 0

    for path in report.removed:
        print(f"  ✓ Deleted: {path}")
    for path in report.failed:
        print(f"  ✗ Could not delete: {path}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
