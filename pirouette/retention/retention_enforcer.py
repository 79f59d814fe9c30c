"""Evicts the oldest snapshots of a tier once it exceeds its capacity."""

import logging
import os
import shutil

from pirouette.retention.directory_entry import DirectoryEntry, is_partial, list_entries
from pirouette.retention.dry_run import guarded
from pirouette.retention.retention_target import RetentionTarget

logger = logging.getLogger(__name__)


def select_expired(entries: list[DirectoryEntry], max_count: int) -> list[DirectoryEntry]:
    """Return the entries to evict so that at most ``max_count`` remain.

    Oldest first. ``sorted`` is stable, so entries with equal timestamps
    keep their listing order.
    """
    excess = len(entries) - max_count
    if excess <= 0:
        return []
    return sorted(entries, key=lambda e: e.sort_key)[:excess]


def _delete_entry(entry: DirectoryEntry):
    # Re-check on disk; the listing may not have known the type
    on_disk_dir = entry.path.is_dir() and not entry.path.is_symlink()
    if entry.is_dir or on_disk_dir:
        shutil.rmtree(entry.path)
    else:
        os.unlink(entry.path)


def delete_snapshots(expired: list[DirectoryEntry], dry_run: bool = False) -> int:
    """Delete each expired snapshot, continuing past failures.

    Returns the number of entries that could not be removed.
    """
    failed = 0
    for entry in expired:
        logger.info("Deleting expired snapshot %s", entry.path)
        try:
            guarded(dry_run, f"delete {entry.path}", _delete_entry, entry)
        except OSError as exc:
            failed += 1
            logger.warning("Failed to delete %s: %s", entry.path, exc)
    return failed


def discard_partials(partials: list[DirectoryEntry], dry_run: bool = False):
    """Remove archives left behind by an interrupted write.

    Runs after the snapshot step of the same pass, so no write is in
    progress; overlapping runs are not supported.
    """
    for entry in partials:
        logger.info("Removing leftover in-progress archive %s", entry.path)
        try:
            guarded(dry_run, f"delete {entry.path}", _delete_entry, entry)
        except OSError as exc:
            logger.warning("Failed to delete %s: %s", entry.path, exc)


def enforce_retention(target: RetentionTarget, dry_run: bool = False) -> list[DirectoryEntry]:
    """Trim ``target`` back to its configured snapshot count.

    Returns the eviction set (what was deleted, or would have been in
    dry-run mode).
    """
    logger.info("Checking %s for expired snapshots", target.period)
    try:
        listing = list_entries(target.path, include_partial=True)
    except OSError as exc:
        logger.warning("Could not list %s, nothing to clean: %s", target.path, exc)
        return []

    entries = [e for e in listing if not is_partial(e.path.name)]
    discard_partials([e for e in listing if is_partial(e.path.name)], dry_run=dry_run)

    logger.info("Currently %d snapshots in %s, keeping %d",
                len(entries), target.path, target.max_count)

    expired = select_expired(entries, target.max_count)
    if not expired:
        return []

    logger.info("Deleting %d expired snapshot(s) from %s", len(expired), target.path)
    delete_snapshots(expired, dry_run=dry_run)
    return expired
