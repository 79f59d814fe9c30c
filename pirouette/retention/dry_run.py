"""Single point of control for filesystem mutations under dry-run."""

import logging

logger = logging.getLogger(__name__)


def guarded(dry_run: bool, description: str, action, *args, **kwargs):
    """Run ``action`` unless ``dry_run`` is set.

    In dry-run mode the intended mutation is logged and None is returned.
    """
    if dry_run:
        logger.info("[dry-run] would %s", description)
        return None
    return action(*args, **kwargs)
