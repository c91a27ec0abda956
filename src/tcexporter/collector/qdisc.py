"""
Collector that walks namespaces, interfaces and tc objects.

A single QdiscCollector class backs the generic qdisc/class families and
every per-kind family. What differs between them is injected: the handler
(validate + collect_into), the object lister (qdiscs or classes) and the
label set.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from tcexporter.collector.base import CollectorBase
from tcexporter.collector.config import CollectorConfig, MetricConfig
from tcexporter.collector.kinds import BASIC_METRICS, KIND_METRICS, BasicStatsHandler, XStatsHandler
from tcexporter.metrics import MetricSink
from tcexporter.tc.objects import TCDataSource, TcObject

log = logging.getLogger(__name__)

KIND_LABELS: Tuple[str, ...] = ("namespace", "device", "kind")
BASIC_LABELS: Tuple[str, ...] = ("namespace", "device")


class ObjectHandler(Protocol):
    def validate(self, obj: TcObject) -> bool: ...

    def collect_into(self, collector: "QdiscCollector", sink: MetricSink,
                     namespace: str, device: str, obj: TcObject) -> None: ...


ObjectLister = Callable[[TCDataSource, int, str], List[TcObject]]


def list_qdiscs(source: TCDataSource, ifindex: int, namespace: str) -> List[TcObject]:
    return source.list_qdiscs(ifindex, namespace)


def list_classes(source: TCDataSource, ifindex: int, namespace: str) -> List[TcObject]:
    return source.list_classes(ifindex, namespace)


class QdiscCollector(CollectorBase):

    def __init__(
        self,
        collector_id: str,
        source: TCDataSource,
        config: CollectorConfig,
        handler: ObjectHandler,
        name: str = "",
        description: str = "",
        label_names: Tuple[str, ...] = KIND_LABELS,
        metric_prefix: str = "",
        lister: ObjectLister = list_qdiscs,
    ):
        super().__init__(
            collector_id,
            name or collector_id,
            description,
            config,
            label_names=label_names,
            metric_prefix=metric_prefix,
        )
        self._source = source
        self._handler = handler
        self._lister = lister

    def collect_metrics(self, sink: MetricSink) -> None:
        try:
            namespaces = self._source.list_namespaces()
        except Exception as e:
            log.warning("%s: failed to list namespaces: %s", self.id(), e)
            self.set_last_error(e)
            return

        for namespace in namespaces:
            try:
                interfaces = self._source.list_interfaces(namespace)
            except Exception as e:
                log.warning("%s: failed to list interfaces in %s: %s", self.id(), namespace, e)
                self.set_last_error(e)
                continue

            for iface in interfaces:
                try:
                    objects = self._lister(self._source, iface.index, namespace)
                except Exception as e:
                    log.warning("%s: failed to list objects on %s/%s: %s",
                                self.id(), namespace, iface.name, e)
                    self.set_last_error(e)
                    continue

                for obj in objects:
                    if not self._handler.validate(obj):
                        continue
                    self._handler.collect_into(self, sink, namespace, iface.name, obj)


def default_kind_config(kind: str) -> CollectorConfig:
    """All metrics the kind's catalogue knows about, enabled."""
    metrics: Dict[str, MetricConfig] = {
        name: MetricConfig(name=name, help=field.help)
        for name, field in KIND_METRICS[kind].items()
    }
    return CollectorConfig(enabled=True, metrics=metrics)


def default_basic_config(family: str = "qdisc") -> CollectorConfig:
    metrics: Dict[str, MetricConfig] = {
        name: MetricConfig(name=name, help=help_text.format(family=family))
        for name, help_text in BASIC_METRICS.items()
    }
    return CollectorConfig(enabled=True, metrics=metrics)


def new_kind_collector(kind: str, source: TCDataSource,
                       config: Optional[CollectorConfig] = None) -> QdiscCollector:
    return QdiscCollector(
        collector_id=f"qdisc_{kind}",
        source=source,
        config=config if config is not None else default_kind_config(kind),
        handler=XStatsHandler(kind),
        name=f"{kind} qdisc",
        description=f"Extended statistics for {kind} queueing disciplines",
        label_names=KIND_LABELS,
        metric_prefix=f"qdisc_{kind}_",
    )


def new_basic_collector(source: TCDataSource, family: str = "qdisc",
                        config: Optional[CollectorConfig] = None) -> QdiscCollector:
    """Generic counters for every qdisc (family="qdisc") or class (family="class")."""
    if family not in ("qdisc", "class"):
        raise ValueError(f"unknown tc object family: {family!r}")
    return QdiscCollector(
        collector_id=family,
        source=source,
        config=config if config is not None else default_basic_config(family),
        handler=BasicStatsHandler(),
        name=f"{family} statistics",
        description=f"Generic counters for every tc {family}",
        label_names=BASIC_LABELS,
        metric_prefix=f"{family}_",
        lister=list_classes if family == "class" else list_qdiscs,
    )
