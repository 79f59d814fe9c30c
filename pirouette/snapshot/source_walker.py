"""Enumerates and filters the files that make up a snapshot."""

import logging
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceEntry:
    path: Path
    # Path relative to the source root, in POSIX form
    relative: PurePosixPath


def walk_source(source) -> list[SourceEntry]:
    """Recursively collect regular files and symlinks under ``source``.

    Directories are walked but never returned. Symlinked directories are
    returned as links and not descended into. A ``source`` that is itself
    a file yields a single entry named after the file. Entries that cannot
    be read are logged and skipped.
    """
    root = Path(source)
    if not root.is_dir():
        return [SourceEntry(path=root, relative=PurePosixPath(root.name))]

    found: list[SourceEntry] = []
    pending = [root]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.warning("Error reading source directory %s: %s", current, exc)
            continue

        for child in children:
            try:
                if child.is_symlink() or child.is_file(follow_symlinks=False):
                    path = Path(child.path)
                    rel = PurePosixPath(path.relative_to(root).as_posix())
                    found.append(SourceEntry(path=path, relative=rel))
                elif child.is_dir(follow_symlinks=False):
                    pending.append(Path(child.path))
            except OSError as exc:
                logger.warning("Error reading source entry %s: %s", child.path, exc)

    found.sort(key=lambda e: e.relative)
    return found


def matches_filters(relative, include: list[str], exclude: list[str]) -> bool:
    """Apply include/exclude globs to a source-relative path.

    Kept iff it matches any include pattern (or there are none) and no
    exclude pattern. ``*`` also matches ``/``.
    """
    name = str(PurePosixPath(relative))
    if include and not any(fnmatchcase(name, pat) for pat in include):
        return False
    return not any(fnmatchcase(name, pat) for pat in exclude)


def filtered_source(source, include: list[str], exclude: list[str]) -> list[SourceEntry]:
    entries = walk_source(source)
    kept = [e for e in entries if matches_filters(e.relative, include, exclude)]
    logger.debug("%d of %d source entries pass the filters", len(kept), len(entries))
    return kept
