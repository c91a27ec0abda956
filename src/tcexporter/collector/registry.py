"""
Registry of live collectors and the factories that build them.

collect_all() is the only path a scrape takes into collector code. It runs
collectors one at a time in registration order, and each call sits behind
its own fault barrier so one broken family cannot blank out the scrape.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tcexporter.collector.base import Collector, CollectorBase
from tcexporter.collector.factory import CollectorFactory
from tcexporter.errors import DuplicateCollectorError, DuplicateFactoryError, FactoryNotFoundError
from tcexporter.metrics import MetricSink
from tcexporter.sync import RWLock

log = logging.getLogger(__name__)


@dataclass
class CollectionResult:
    collected: int = 0
    failed: List[str] = field(default_factory=list)
    duration: float = 0.0


class CollectorRegistry:

    def __init__(self):
        self._lock = RWLock()
        self._collectors: Dict[str, Collector] = {}
        self._factories: Dict[str, CollectorFactory] = {}

    # -- collectors --

    def register(self, collector: Collector) -> None:
        collector_id = collector.id()
        with self._lock.write():
            if collector_id in self._collectors:
                raise DuplicateCollectorError(collector_id)
            self._collectors[collector_id] = collector
        log.debug("Registered collector %s", collector_id)

    def unregister(self, collector_id: str) -> None:
        with self._lock.write():
            removed = self._collectors.pop(collector_id, None)
        if removed is not None:
            log.debug("Unregistered collector %s", collector_id)

    def get_collector(self, collector_id: str) -> Optional[Collector]:
        with self._lock.read():
            return self._collectors.get(collector_id)

    def get_all_collectors(self) -> List[Collector]:
        with self._lock.read():
            return list(self._collectors.values())

    def get_enabled_collectors(self) -> List[Collector]:
        with self._lock.read():
            return [c for c in self._collectors.values() if c.enabled()]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._collectors)

    # -- factories --

    def register_factory(self, name: str, factory: CollectorFactory) -> None:
        with self._lock.write():
            if name in self._factories:
                raise DuplicateFactoryError(name)
            self._factories[name] = factory

    def unregister_factory(self, name: str) -> None:
        with self._lock.write():
            self._factories.pop(name, None)

    def get_factory(self, name: str) -> Optional[CollectorFactory]:
        with self._lock.read():
            return self._factories.get(name)

    def create_collector(self, factory_name: str, kind: str) -> Collector:
        factory = self.get_factory(factory_name)
        if factory is None:
            raise FactoryNotFoundError(factory_name)
        return factory.create_collector(kind)

    # -- collection --

    def collect_all(self, sink: MetricSink) -> CollectionResult:
        """Run every enabled collector once, isolating failures per collector."""
        result = CollectionResult()
        start = time.monotonic()

        for collector in self.get_enabled_collectors():
            try:
                collector.collect(sink)
                result.collected += 1
            except Exception as e:
                log.exception("Collector %s failed, continuing with the rest", collector.id())
                if isinstance(collector, CollectorBase):
                    collector.set_last_error(e)
                result.failed.append(collector.id())

        result.duration = time.monotonic() - start
        return result
