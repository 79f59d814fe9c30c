"""Decides, per retention tier, whether a new snapshot is due."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from pirouette.errors import TierDirectoryError
from pirouette.retention.directory_entry import DirectoryEntry, list_entries
from pirouette.retention.dry_run import guarded
from pirouette.retention.retention_config import RetentionPeriod
from pirouette.retention.retention_target import RetentionTarget

logger = logging.getLogger(__name__)


def ensure_tier_directory(path: Path, dry_run: bool = False):
    """Create a tier directory (and parents) if it does not exist yet."""
    if path.is_dir():
        return
    logger.info("Tier directory %s does not exist, creating it", path)
    try:
        guarded(dry_run, f"create directory {path}",
                path.mkdir, parents=True, exist_ok=True)
    except OSError as exc:
        raise TierDirectoryError(path, exc) from exc


def newest_entry(entries: list[DirectoryEntry]) -> DirectoryEntry | None:
    if not entries:
        return None
    return max(entries, key=lambda e: e.sort_key)


def has_aged_out(
    period: RetentionPeriod,
    entry: DirectoryEntry,
    now: datetime | None = None,
) -> bool:
    """Return True if ``entry`` is at least one period old.

    The bound is inclusive and compared in whole seconds. A snapshot dated
    in the future (clock skew) is never considered aged out.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        # Naive values are local time
        now = now.astimezone()
    age = now - entry.sort_key
    if age.total_seconds() < 0:
        logger.warning(
            "Snapshot %s is dated in the future, is the system clock correct?",
            entry.path,
        )
        return False
    return int(age.total_seconds()) >= period.threshold_seconds


def is_rotation_due(
    target: RetentionTarget,
    dry_run: bool = False,
    now: datetime | None = None,
) -> bool:
    """Check whether ``target`` needs a new snapshot.

    Creates the tier directory when missing. Raises TierDirectoryError if
    that fails; every other problem reading existing snapshots is
    recovered from.
    """
    logger.info("Checking existing state for %s", target.period)
    ensure_tier_directory(target.path, dry_run=dry_run)

    try:
        entries = list_entries(target.path)
    except FileNotFoundError:
        # Only reachable in dry-run, where the directory was never created
        entries = []
    except OSError as exc:
        logger.warning("Could not list %s, treating it as empty: %s",
                       target.path, exc)
        entries = []

    logger.debug("%s contains %d existing entries", target.path, len(entries))

    newest = newest_entry(entries)
    if newest is None:
        logger.info("%s has no snapshots, rotation is due", target.path)
        return True

    due = has_aged_out(target.period, newest, now)
    if due:
        logger.info("%s requires a new snapshot", target.path)
    else:
        logger.info("%s does not require a new snapshot", target.path)
    return due
