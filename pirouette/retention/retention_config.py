"""Retention periods, their age thresholds and on-disk naming."""

from datetime import datetime, timezone
from enum import Enum

from pirouette.errors import ConfigError

HOUR = 60 * 60
DAY = 24 * HOUR

# A month is a fixed 30 days and a year a fixed 365 days; no calendar math.
PERIOD_THRESHOLDS = {
    "hours": HOUR,
    "days": DAY,
    "weeks": 7 * DAY,
    "months": 30 * DAY,
    "years": 365 * DAY,
}

# Snapshot names have minute resolution
SNAPSHOT_NAME_FORMAT = "%Y-%m-%dT%H:%M"
ARCHIVE_SUFFIX = ".tgz"
ARCHIVE_COMPRESSLEVEL = 9

# Requested mode for new archives, before the umask is applied
NEW_FILE_MODE = 0o666

# In-progress archives live next to finished ones until renamed
PARTIAL_PREFIX = ".partial-"

# Stand-in for unreadable metadata; sorts before every real timestamp
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RetentionPeriod(str, Enum):
    """A retention tier. The value doubles as the tier's directory name."""

    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"

    def __str__(self) -> str:
        return self.value

    @property
    def threshold_seconds(self) -> int:
        return PERIOD_THRESHOLDS[self.value]

    @classmethod
    def from_name(cls, name: str) -> "RetentionPeriod":
        """Look up a period by its configured tier name.

        Raises ConfigError for anything that is not one of the five
        canonical names.
        """
        key = str(name).strip().lower()
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ConfigError(
                f"unknown retention period {name!r} (expected one of: {valid})"
            ) from None


class OutputFormat(str, Enum):
    DIRECTORY = "directory"
    TARBALL = "tarball"

    def __str__(self) -> str:
        return self.value
