"""Filesystem-independent view of a tier directory's children.

The rotation decider and retention enforcer only ever see
``DirectoryEntry`` values, which keeps their decisions testable without
touching real file metadata.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pirouette.retention.retention_config import EPOCH, PARTIAL_PREFIX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    path: Path
    # None when the entry's metadata could not be read
    modified: datetime | None
    is_dir: bool = False

    @property
    def sort_key(self) -> datetime:
        """Timestamp used for ordering and ageing.

        Entries with unknown metadata are treated as the oldest possible
        snapshot (the Unix epoch): they age out first and are evicted
        first. This is not a real modification time.
        """
        if self.modified is None:
            return EPOCH
        return self.modified

    @classmethod
    def from_dir_entry(cls, entry) -> "DirectoryEntry":
        path = Path(entry.path)
        try:
            st = entry.stat(follow_symlinks=False)
        except OSError as exc:
            logger.debug("Could not read metadata for %s: %s", path, exc)
            st = None

        # The listing usually knows the type even when stat fails
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            is_dir = False

        if st is None:
            return cls(path=path, modified=None, is_dir=is_dir)
        modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        return cls(path=path, modified=modified, is_dir=is_dir)

    def __str__(self) -> str:
        return str(self.path)


def is_partial(name: str) -> bool:
    """True for in-progress archives, which are never snapshots."""
    return name.startswith(PARTIAL_PREFIX)


def list_entries(directory, include_partial: bool = False) -> list[DirectoryEntry]:
    """Return the direct children of ``directory``.

    In-progress archives are left out unless ``include_partial`` is set.

    Raises OSError if the directory itself cannot be opened. Children whose
    metadata cannot be read are kept with an unknown timestamp; a failing
    readdir ends the listing with whatever was read so far.
    """
    entries = []
    with os.scandir(directory) as it:
        while True:
            try:
                child = next(it)
            except StopIteration:
                break
            except OSError as exc:
                # readdir failures are not recoverable mid-stream
                logger.debug("Listing of %s stopped early: %s", directory, exc)
                break
            if is_partial(child.name) and not include_partial:
                logger.debug("Ignoring in-progress archive %s", child.path)
                continue
            entries.append(DirectoryEntry.from_dir_entry(child))
    return entries
