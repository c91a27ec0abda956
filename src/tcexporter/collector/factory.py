"""Factories that build collectors for a requested kind."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from tcexporter.collector.base import Collector
from tcexporter.collector.config import CollectorConfig
from tcexporter.collector.qdisc import default_kind_config, new_kind_collector
from tcexporter.errors import UnsupportedKindError
from tcexporter.tc.objects import TCDataSource


class CollectorFactory(ABC):

    @abstractmethod
    def create_collector(self, kind: str) -> Collector: ...

    @abstractmethod
    def get_supported_types(self) -> List[str]: ...


class QdiscCollectorFactory(CollectorFactory):
    """Builds per-kind qdisc collectors, with optional per-kind config overrides."""

    SUPPORTED_TYPES = (
        "codel", "cbq", "htb", "fq", "fq_codel", "choke",
        "pie", "red", "sfb", "sfq", "hfsc",
    )

    def __init__(self, source: TCDataSource, configs: Optional[Dict[str, CollectorConfig]] = None):
        self._source = source
        self._configs: Dict[str, CollectorConfig] = dict(configs or {})
        self._lock = threading.Lock()

    def get_supported_types(self) -> List[str]:
        return list(self.SUPPORTED_TYPES)

    def add_config(self, kind: str, config: CollectorConfig) -> None:
        with self._lock:
            self._configs[kind] = config

    def get_config(self, kind: str) -> CollectorConfig:
        with self._lock:
            config = self._configs.get(kind)
        return config if config is not None else default_kind_config(kind)

    def remove_config(self, kind: str) -> None:
        with self._lock:
            self._configs.pop(kind, None)

    def create_collector(self, kind: str) -> Collector:
        if kind not in self.SUPPORTED_TYPES:
            raise UnsupportedKindError(kind)
        return new_kind_collector(kind, self._source, self.get_config(kind))
