"""Per-tier retention targets derived from configuration."""

from dataclasses import dataclass
from pathlib import Path

from pirouette.retention.retention_config import RetentionPeriod


@dataclass(frozen=True)
class RetentionTarget:
    period: RetentionPeriod
    path: Path
    max_count: int

    def __str__(self) -> str:
        return f"{self.period} ({self.path}, keep {self.max_count})"


def build_targets(target_root, retention: dict) -> list[RetentionTarget]:
    """Create one target per configured tier, shortest period first."""
    root = Path(target_root)
    order = list(RetentionPeriod)
    return [
        RetentionTarget(period=period, path=root / period.value, max_count=count)
        for period, count in sorted(retention.items(), key=lambda kv: order.index(kv[0]))
    ]
