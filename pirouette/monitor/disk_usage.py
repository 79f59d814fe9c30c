"""Free-space checks for snapshot destinations using psutil."""

import logging
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


def free_bytes(path) -> int | None:
    """Return free bytes on the filesystem holding ``path``.

    ``path`` need not exist yet; its nearest existing ancestor is used.
    Returns None if usage cannot be determined.
    """
    candidate = Path(path).absolute()
    while not candidate.exists() and candidate != candidate.parent:
        candidate = candidate.parent
    try:
        return psutil.disk_usage(str(candidate)).free
    except OSError as exc:
        logger.debug("Could not read disk usage for %s: %s", candidate, exc)
        return None


def has_capacity(path, required: int) -> bool:
    """False only when free space is known and smaller than ``required``."""
    free = free_bytes(path)
    if free is None:
        return True
    return free >= required
