"""Per-collector configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class MetricConfig:
    name: str
    help: str
    enabled: bool = True


@dataclass
class CollectorConfig:
    """Which metrics a collector exposes, keyed by metric name in emission order."""

    enabled: bool = True
    metrics: Dict[str, MetricConfig] = field(default_factory=dict)

    def enabled_metrics(self) -> List[MetricConfig]:
        return [m for m in self.metrics.values() if m.enabled]

    def disable_metric(self, name: str) -> None:
        if name in self.metrics:
            self.metrics[name].enabled = False
