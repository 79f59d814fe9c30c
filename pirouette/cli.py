"""Command-line entry point: one rotation pass per invocation.

Usage:
    pirouette
    pirouette --config /etc/pirouette.toml --log-level info
    pirouette --dry-run

Exit status is 0 on success, 1 if any tier failed and 2 if the
configuration could not be loaded.
"""

import argparse
import logging
import os
import sys

from pirouette.config.settings import LOG_LEVELS, load_config, parse_log_level
from pirouette.errors import ConfigError
from pirouette.retention.rotation_manager import run

EXIT_OK = 0
EXIT_TIER_FAILED = 1
EXIT_CONFIG_ERROR = 2

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pirouette",
        description="Rotate time-bucketed snapshots of a file or directory",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to the config file (default: $PIROUETTE_CONFIG_FILE or ./pirouette.toml)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL") or None,
        type=str.lower,
        choices=sorted(LOG_LEVELS),
        help="Logging level (overrides options.log_level)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would change without touching the filesystem",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Configure early so config loading can log; the level is refined below
    logging.basicConfig(
        level=parse_log_level(args.log_level),
        format=LOG_FORMAT,
    )

    try:
        config = load_config(args.config, dry_run=True if args.dry_run else None)
    except ConfigError as exc:
        print(f"pirouette: configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if not args.log_level:
        logging.getLogger().setLevel(config.options.log_level)

    report = run(config)
    if not report.success:
        for tier in report.failures:
            print(f"pirouette: {tier.period} ({tier.path}): {tier.error}", file=sys.stderr)
        return EXIT_TIER_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
