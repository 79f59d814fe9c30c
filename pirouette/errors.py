"""Exception types raised across the rotation pipeline."""


class PirouetteError(Exception):
    """Base class for all errors reported at the process boundary."""


class ConfigError(PirouetteError):
    """Configuration is missing, unreadable or invalid."""


class _PathError(PirouetteError):
    action = "process"

    def __init__(self, path, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        message = f"failed to {self.action} {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class TierDirectoryError(_PathError):
    """A retention tier directory could not be created."""

    action = "create tier directory"


class SnapshotError(_PathError):
    """A snapshot could not be written."""

    action = "write snapshot"
