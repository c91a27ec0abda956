"""
Metric shapes shared by collectors and the exposition layer.

A collection pass pushes Samples into a MetricSink. The sink is created per
scrape and thrown away afterwards, so nothing here is persisted.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple


@dataclass(frozen=True)
class MetricDescriptor:
    """Identifies one metric family independent of its label values."""

    name: str
    help: str
    label_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Sample:
    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.label_values) != len(self.descriptor.label_names):
            raise ValueError(
                f"{self.descriptor.name}: expected {len(self.descriptor.label_names)} "
                f"label values, got {len(self.label_values)}"
            )

    @property
    def labels(self) -> Dict[str, str]:
        return dict(zip(self.descriptor.label_names, self.label_values))


class MetricSink:
    """Append-only sample buffer for a single collection pass."""

    def __init__(self):
        self._samples: List[Sample] = []
        self._lock = threading.Lock()

    def emit(self, descriptor: MetricDescriptor, value: float, *label_values: str) -> None:
        sample = Sample(descriptor, float(value), tuple(str(v) for v in label_values))
        with self._lock:
            self._samples.append(sample)

    def samples(self) -> List[Sample]:
        with self._lock:
            return list(self._samples)

    def families(self) -> "OrderedDict[MetricDescriptor, List[Sample]]":
        """Group samples by descriptor, keeping first-seen order."""
        grouped: "OrderedDict[MetricDescriptor, List[Sample]]" = OrderedDict()
        for sample in self.samples():
            grouped.setdefault(sample.descriptor, []).append(sample)
        return grouped

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.samples())
