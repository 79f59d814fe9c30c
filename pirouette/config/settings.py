"""Loading and validation of the rotation configuration file.

Example ``pirouette.toml``::

    [source]
    path = "/source"

    [target]
    path = "/target"

    [retention]
    hours = 24
    days = 7

    [options]
    output_format = "tarball"
    exclude = ["*.tmp"]
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from pirouette.errors import ConfigError
from pirouette.retention.dry_run import guarded
from pirouette.retention.retention_config import OutputFormat, RetentionPeriod

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PIROUETTE_CONFIG_FILE"
CONFIG_FILE_NAME = "pirouette.toml"
CONTAINER_CONFIG_DIR = Path("/config")

# "off" sits above every level the tool emits
LOG_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}
DEFAULT_LOG_LEVEL = logging.WARNING


@dataclass
class Options:
    output_format: OutputFormat = OutputFormat.DIRECTORY
    dry_run: bool = False
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    log_level: int = DEFAULT_LOG_LEVEL


@dataclass
class Config:
    source: Path
    target: Path
    retention: dict[RetentionPeriod, int]
    options: Options = field(default_factory=Options)


# ----------------------------------------------------------------------
# Locating the config file
# ----------------------------------------------------------------------

def in_container() -> bool:
    """Best-effort check for running inside a container runtime."""
    if os.path.exists("/.dockerenv") or os.path.exists("/run/.containerenv"):
        return True
    try:
        with open("/proc/1/cgroup") as f:
            cgroup = f.read()
    except OSError:
        return False
    return any(marker in cgroup for marker in ("docker", "kubepods", "containerd", "libpod"))


def default_config_path() -> Path:
    base = CONTAINER_CONFIG_DIR if in_container() else Path.cwd()
    return base / CONFIG_FILE_NAME


def resolve_config_path(environ=None) -> Path:
    """Config path from the environment, or the default location.

    An empty environment variable counts as unset.
    """
    environ = os.environ if environ is None else environ
    value = environ.get(CONFIG_ENV_VAR, "")
    if value:
        return Path(value)
    return default_config_path()


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

def parse_log_level(value) -> int:
    """Map a configured level name to a logging level.

    Unknown names fall back to the default (warning).
    """
    if value is None:
        return DEFAULT_LOG_LEVEL
    return LOG_LEVELS.get(str(value).strip().lower(), DEFAULT_LOG_LEVEL)


def _resolve_path(path_str: str) -> Path:
    return Path(os.path.expanduser(os.path.expandvars(path_str)))


def _read_path(raw: dict, section: str) -> Path:
    table = raw.get(section)
    if not isinstance(table, dict) or "path" not in table:
        raise ConfigError(f"missing [{section}] path")
    value = table["path"]
    if not isinstance(value, str) or not value:
        raise ConfigError(f"[{section}] path must be a non-empty string")
    return _resolve_path(value)


def _parse_retention(raw) -> dict[RetentionPeriod, int]:
    if not isinstance(raw, dict) or not raw:
        raise ConfigError("no retention period was specified")

    retention = {}
    for name, count in raw.items():
        period = RetentionPeriod.from_name(name)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ConfigError(
                f"retention count for {period} must be a non-negative integer, got {count!r}"
            )
        if period in retention:
            raise ConfigError(f"retention period {period} is specified more than once")
        retention[period] = count
    return retention


def _parse_patterns(raw: dict, key: str) -> list[str]:
    value = raw.get(key, [])
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ConfigError(f"options.{key} must be a list of glob patterns")
    return list(value)


def _parse_options(raw) -> Options:
    if raw is None:
        return Options()
    if not isinstance(raw, dict):
        raise ConfigError("[options] must be a table")

    fmt = raw.get("output_format", OutputFormat.DIRECTORY.value)
    try:
        output_format = OutputFormat(str(fmt).strip().lower())
    except ValueError:
        valid = ", ".join(f.value for f in OutputFormat)
        raise ConfigError(
            f"unknown output_format {fmt!r} (expected one of: {valid})"
        ) from None

    dry_run = raw.get("dry_run", False)
    if not isinstance(dry_run, bool):
        raise ConfigError("options.dry_run must be true or false")

    return Options(
        output_format=output_format,
        dry_run=dry_run,
        include=_parse_patterns(raw, "include"),
        exclude=_parse_patterns(raw, "exclude"),
        log_level=parse_log_level(raw.get("log_level")),
    )


def parse_config(raw: dict) -> Config:
    """Build a Config from an already-decoded mapping (no filesystem checks)."""
    if not isinstance(raw, dict):
        raise ConfigError("configuration must be a table")
    return Config(
        source=_read_path(raw, "source"),
        target=_read_path(raw, "target"),
        retention=_parse_retention(raw.get("retention")),
        options=_parse_options(raw.get("options")),
    )


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def validate_source(source: Path):
    if not source.exists():
        raise ConfigError(f"source path does not exist: {source}")


def validate_target(target: Path, dry_run: bool = False):
    if target.exists():
        if not target.is_dir():
            raise ConfigError(f"target path is a file, not a directory: {target}")
        return
    logger.info("Target directory %s does not exist, creating it", target)
    try:
        guarded(dry_run, f"create directory {target}",
                target.mkdir, parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"failed to create target directory {target}: {exc}") from exc


def validate_config(config: Config):
    validate_source(config.source)
    validate_target(config.target, dry_run=config.options.dry_run)


def read_config_file(path: Path) -> dict:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc

    try:
        if path.suffix == ".json":
            return json.loads(text)
        return tomllib.loads(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc


def load_config(config_path=None, dry_run: bool | None = None) -> Config:
    """Read, parse and validate the configuration file.

    ``dry_run`` overrides the file's option when given, and is applied
    before validation so that a dry run never creates the target.
    """
    path = Path(config_path) if config_path else resolve_config_path()
    logger.debug("Reading configuration from %s", path)
    config = parse_config(read_config_file(path))
    if dry_run is not None:
        config.options.dry_run = dry_run
    validate_config(config)
    return config
