"""
Bridge between the collector registry and prometheus_client.

Every scrape runs one collect_all() pass into a fresh MetricSink and hands
the grouped samples to prometheus_client as gauge families.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from prometheus_client import (
    CollectorRegistry as PromRegistry,
    Counter,
    GCCollector,
    Histogram,
    Info,
    PlatformCollector,
    ProcessCollector,
)
from prometheus_client.core import GaugeMetricFamily, Metric

from tcexporter.collector.registry import CollectorRegistry
from tcexporter.metrics import MetricSink

log = logging.getLogger(__name__)


class ExporterMetrics:
    """The exporter's own scrape bookkeeping."""

    def __init__(self, registry: PromRegistry, version: str):
        self.passes = Counter(
            "tc_exporter_collection_passes",
            "Collection passes run for scrapes",
            registry=registry,
        )
        self.failures = Counter(
            "tc_exporter_collector_failures",
            "Collector invocations that raised during a pass",
            ["collector"],
            registry=registry,
        )
        self.duration = Histogram(
            "tc_exporter_collection_duration_seconds",
            "Wall time of a full collection pass",
            registry=registry,
        )
        self.build = Info("tc_exporter_build", "Exporter build information", registry=registry)
        self.build.info({"version": version})


class RegistryBridge:
    """prometheus_client custom collector that drives CollectorRegistry.collect_all."""

    def __init__(self, registry: CollectorRegistry, metrics: Optional[ExporterMetrics] = None):
        self._registry = registry
        self.metrics = metrics

    def describe(self) -> list:
        # Registration must not trigger a pass against the kernel.
        return []

    def collect(self) -> Iterator[Metric]:
        sink = MetricSink()
        result = self._registry.collect_all(sink)

        if self.metrics is not None:
            self.metrics.passes.inc()
            self.metrics.duration.observe(result.duration)
            for collector_id in result.failed:
                self.metrics.failures.labels(collector=collector_id).inc()

        log.debug("Collection pass: %d collectors, %d failed, %d samples in %.3fs",
                  result.collected, len(result.failed), len(sink), result.duration)

        for descriptor, samples in sink.families().items():
            family = GaugeMetricFamily(descriptor.name, descriptor.help,
                                       labels=list(descriptor.label_names))
            for sample in samples:
                family.add_metric(list(sample.label_values), sample.value)
            yield family


def build_prometheus_registry(registry: CollectorRegistry, version: str,
                              enable_default_collectors: bool = False) -> PromRegistry:
    prom = PromRegistry(auto_describe=False)
    bridge = RegistryBridge(registry)
    prom.register(bridge)
    # Registered after the bridge so a scrape reports the pass it just ran.
    bridge.metrics = ExporterMetrics(prom, version)

    if enable_default_collectors:
        ProcessCollector(registry=prom)
        PlatformCollector(registry=prom)
        GCCollector(registry=prom)
    return prom
