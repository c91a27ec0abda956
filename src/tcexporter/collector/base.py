"""Base interface and shared state for metric collectors."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from tcexporter.collector.config import CollectorConfig
from tcexporter.errors import ConfigTypeError
from tcexporter.metrics import MetricDescriptor, MetricSink

log = logging.getLogger(__name__)


class Collector(ABC):
    """Interface for every statistics family the registry can drive."""

    @abstractmethod
    def id(self) -> str:
        """Stable identifier, unique across the process."""

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def description(self) -> str: ...

    @abstractmethod
    def enabled(self) -> bool: ...

    @abstractmethod
    def set_enabled(self, enabled: bool) -> None: ...

    @abstractmethod
    def collect(self, sink: MetricSink) -> None:
        """Push zero or more samples for descriptors this collector owns."""

    @abstractmethod
    def get_config(self) -> CollectorConfig: ...

    @abstractmethod
    def set_config(self, config: CollectorConfig) -> None: ...


class CollectorBase(Collector):
    """Identity, lifecycle and descriptor bookkeeping shared by collectors.

    Subclasses implement collect_metrics(); collect() handles the enabled
    check and the last-collect timestamp.
    """

    def __init__(
        self,
        collector_id: str,
        name: str,
        description: str,
        config: CollectorConfig,
        label_names: Tuple[str, ...] = (),
        metric_prefix: str = "",
    ):
        self._id = collector_id
        self._name = name
        self._description = description
        self._label_names = tuple(label_names)
        self._metric_prefix = metric_prefix
        self._lock = threading.Lock()
        self._enabled = config.enabled
        self._config = config
        self._descriptors: Dict[str, MetricDescriptor] = {}
        self._last_error: Optional[BaseException] = None
        self._last_collect: Optional[datetime] = None
        self._build_descriptors(config)

    def _build_descriptors(self, config: CollectorConfig) -> None:
        descriptors = {}
        for metric in config.enabled_metrics():
            descriptors[metric.name] = MetricDescriptor(
                name=self._metric_prefix + metric.name,
                help=metric.help,
                label_names=self._label_names,
            )
        with self._lock:
            self._descriptors = descriptors

    def id(self) -> str:
        return self._id

    def name(self) -> str:
        return self._name

    def description(self) -> str:
        return self._description

    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled
        log.debug("Collector %s %s", self._id, "enabled" if enabled else "disabled")

    def get_config(self) -> CollectorConfig:
        with self._lock:
            return self._config

    def set_config(self, config: CollectorConfig) -> None:
        if not isinstance(config, CollectorConfig):
            raise ConfigTypeError(
                f"collector {self._id}: expected CollectorConfig, got {type(config).__name__}"
            )
        with self._lock:
            self._config = config
        self._build_descriptors(config)

    @property
    def label_names(self) -> Tuple[str, ...]:
        return self._label_names

    def supported_metrics(self) -> List[str]:
        with self._lock:
            return list(self._descriptors)

    def get_metric(self, metric: str) -> Optional[MetricDescriptor]:
        with self._lock:
            return self._descriptors.get(metric)

    def descriptors(self) -> List[MetricDescriptor]:
        with self._lock:
            return list(self._descriptors.values())

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._last_error

    def set_last_error(self, err: Optional[BaseException]) -> None:
        with self._lock:
            self._last_error = err

    @property
    def last_collect(self) -> Optional[datetime]:
        with self._lock:
            return self._last_collect

    def collect(self, sink: MetricSink) -> None:
        if not self.enabled():
            return
        # errors recorded during this pass replace the previous pass's
        self.set_last_error(None)
        try:
            self.collect_metrics(sink)
        finally:
            with self._lock:
                self._last_collect = datetime.now(timezone.utc)

    @abstractmethod
    def collect_metrics(self, sink: MetricSink) -> None: ...
