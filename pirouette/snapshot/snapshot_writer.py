"""Materializes a snapshot of the source into a retention tier.

A snapshot is either a plain directory copy or a gzip-compressed tar
archive, named after the minute it was taken::

    <target>/<tier>/
    +-- 2025-02-01T14:30/          (directory format)
    |   +-- docs/report.txt
    +-- 2025-02-01T15:30.tgz       (tarball format)
"""

import logging
import os
import shutil
import tarfile
import tempfile
from datetime import datetime
from pathlib import Path

from pirouette.errors import SnapshotError
from pirouette.monitor.disk_usage import free_bytes, has_capacity
from pirouette.retention.dry_run import guarded
from pirouette.retention.retention_config import (
    ARCHIVE_COMPRESSLEVEL,
    ARCHIVE_SUFFIX,
    NEW_FILE_MODE,
    PARTIAL_PREFIX,
    SNAPSHOT_NAME_FORMAT,
    OutputFormat,
)
from pirouette.retention.retention_target import RetentionTarget
from pirouette.snapshot.source_walker import SourceEntry, filtered_source

logger = logging.getLogger(__name__)


def snapshot_path(
    target: RetentionTarget,
    output_format: OutputFormat,
    now: datetime | None = None,
) -> Path:
    # Names use local wall-clock time; naive values are taken as local
    name = (now or datetime.now()).astimezone().strftime(SNAPSHOT_NAME_FORMAT)
    if output_format == OutputFormat.TARBALL:
        name += ARCHIVE_SUFFIX
    return target.path / name


def default_file_mode() -> int:
    """Mode a plain newly created file would get under the current umask."""
    mask = os.umask(0)
    os.umask(mask)
    return NEW_FILE_MODE & ~mask


def _total_size(entries: list[SourceEntry]) -> int:
    total = 0
    for entry in entries:
        try:
            total += entry.path.lstat().st_size
        except OSError:
            pass
    return total


def _check_capacity(destination: Path, entries: list[SourceEntry]):
    required = _total_size(entries)
    if not has_capacity(destination.parent, required):
        logger.warning(
            "Snapshot %s needs about %d bytes but only %s are free",
            destination, required, free_bytes(destination.parent),
        )


def copy_to_directory(entries: list[SourceEntry], destination: Path):
    """Copy every entry into ``destination``, keeping relative layout."""
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SnapshotError(destination, exc) from exc

    for entry in entries:
        dest = destination.joinpath(*entry.relative.parts)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(entry.path, dest, follow_symlinks=False)
        except OSError as exc:
            raise SnapshotError(entry.path, exc) from exc

    logger.info("Copied %d file(s) into %s", len(entries), destination)


def _discard(path):
    try:
        os.unlink(path)
    except OSError:
        pass


def copy_to_tarball(entries: list[SourceEntry], destination: Path):
    """Write every entry into a gzip tar archive at ``destination``.

    The archive is built under a hidden partial name in the same directory
    and renamed into place only after it has been closed, so a finished
    name always refers to a complete archive.
    """
    try:
        fd, partial = tempfile.mkstemp(
            prefix=PARTIAL_PREFIX, suffix=ARCHIVE_SUFFIX, dir=destination.parent,
        )
    except OSError as exc:
        raise SnapshotError(destination, exc) from exc

    try:
        with os.fdopen(fd, "wb") as fh:
            # mkstemp always uses 0600; publish with the usual umask-based mode
            os.fchmod(fh.fileno(), default_file_mode())
            with tarfile.open(fileobj=fh, mode="w:gz",
                              compresslevel=ARCHIVE_COMPRESSLEVEL) as archive:
                for entry in entries:
                    try:
                        archive.add(str(entry.path), arcname=str(entry.relative),
                                    recursive=False)
                    except OSError as exc:
                        raise SnapshotError(entry.path, exc) from exc
        os.replace(partial, destination)
    except OSError as exc:
        _discard(partial)
        raise SnapshotError(destination, exc) from exc
    except BaseException:
        _discard(partial)
        raise

    logger.info("Archived %d file(s) into %s", len(entries), destination)


def write_snapshot(config, target: RetentionTarget, now: datetime | None = None) -> Path | None:
    """Create a new snapshot of ``config.source`` for ``target``.

    Returns the snapshot path, or None in dry-run mode. Raises
    SnapshotError naming the offending path when any file cannot be
    copied; a partially copied directory is left in place.
    """
    options = config.options
    destination = snapshot_path(target, options.output_format, now)
    logger.info("Creating a %s %s snapshot at %s",
                options.output_format, target.period, destination)

    entries = filtered_source(config.source, options.include, options.exclude)

    if options.output_format == OutputFormat.TARBALL:
        writer = copy_to_tarball
    else:
        writer = copy_to_directory

    if not options.dry_run:
        _check_capacity(destination, entries)

    guarded(options.dry_run,
            f"create snapshot {destination} from {len(entries)} file(s)",
            writer, entries, destination)
    return None if options.dry_run else destination
