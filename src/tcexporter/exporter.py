"""Wires the standard collector set for a data source."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from tcexporter.collector.factory import QdiscCollectorFactory
from tcexporter.collector.qdisc import new_basic_collector
from tcexporter.collector.registry import CollectorRegistry
from tcexporter.tc.objects import TCDataSource

log = logging.getLogger(__name__)

QDISC_FACTORY = "qdisc"


def build_registry(source: TCDataSource, kinds: Optional[Iterable[str]] = None) -> CollectorRegistry:
    """Generic qdisc and class collectors, plus one collector per qdisc kind."""
    registry = CollectorRegistry()
    registry.register(new_basic_collector(source, "qdisc"))
    registry.register(new_basic_collector(source, "class"))

    factory = QdiscCollectorFactory(source)
    registry.register_factory(QDISC_FACTORY, factory)

    for kind in kinds if kinds is not None else factory.get_supported_types():
        registry.register(registry.create_collector(QDISC_FACTORY, kind))

    log.info("Registered %d collectors", len(registry))
    return registry
