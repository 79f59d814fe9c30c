"""Rotation orchestration.

Runs one full pass over every configured retention tier: decide whether
a snapshot is due, write it if so, then trim the tier to its capacity.
Tiers are independent; a failure in one is recorded and the pass moves
on to the next.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from pirouette.errors import SnapshotError, TierDirectoryError
from pirouette.retention.directory_entry import DirectoryEntry
from pirouette.retention.retention_config import RetentionPeriod
from pirouette.retention.retention_enforcer import enforce_retention
from pirouette.retention.retention_target import RetentionTarget, build_targets
from pirouette.retention.rotation_decider import is_rotation_due
from pirouette.snapshot.snapshot_writer import write_snapshot

logger = logging.getLogger(__name__)


@dataclass
class TierResult:
    period: RetentionPeriod
    path: Path
    rotated: bool = False
    snapshot: Path | None = None
    evicted: list[DirectoryEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunReport:
    tiers: list[TierResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(t.success for t in self.tiers)

    @property
    def failures(self) -> list[TierResult]:
        return [t for t in self.tiers if not t.success]


class RotationManager:
    """Applies the configured retention policy to the target directory.

    Usage::

        mgr = RotationManager(load_config())
        report = mgr.run()
        if not report.success:
            ...
    """

    def __init__(self, config):
        self.config = config
        self.targets = build_targets(config.target, config.retention)

    @property
    def dry_run(self) -> bool:
        return self.config.options.dry_run

    def process_target(self, target: RetentionTarget, now: datetime | None = None) -> TierResult:
        result = TierResult(period=target.period, path=target.path)

        try:
            due = is_rotation_due(target, dry_run=self.dry_run, now=now)
        except TierDirectoryError as exc:
            logger.error("Skipping %s: %s", target.period, exc)
            result.error = str(exc)
            return result

        if due:
            try:
                result.snapshot = write_snapshot(self.config, target, now=now)
                result.rotated = True
            except SnapshotError as exc:
                logger.error("Failed to create snapshot for %s: %s", target.period, exc)
                result.error = str(exc)

        result.evicted = enforce_retention(target, dry_run=self.dry_run)
        return result

    def run(self, now: datetime | None = None) -> RunReport:
        """Process every tier once and report per-tier outcomes.

        ``now`` is read once so that every tier, and both the due check and
        the snapshot name, see the same clock. Naive values are local time.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.astimezone()
        if self.dry_run:
            logger.info("Dry-run mode: no files will be created or deleted")
        logger.info("Retention periods: %s", ", ".join(str(t.period) for t in self.targets))

        report = RunReport()
        for target in self.targets:
            report.tiers.append(self.process_target(target, now=now))

        rotated = [str(t.period) for t in report.tiers if t.rotated]
        logger.info("Rotated: %s", ", ".join(rotated) or "none")
        return report


def run(config) -> RunReport:
    """Perform one rotation and cleanup pass for ``config``."""
    return RotationManager(config).run()
