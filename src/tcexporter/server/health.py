"""Health, readiness and liveness reporting for the operational endpoints."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from tcexporter.units import format_uptime

STATUS_HEALTHY = "healthy"
STATUS_UNHEALTHY = "unhealthy"


class HealthChecker(ABC):

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def check(self) -> None:
        """Raise to report the component as unhealthy."""


class FunctionChecker(HealthChecker):
    """Wraps a plain callable that raises on failure."""

    def __init__(self, name: str, fn: Callable[[], None]):
        self._name = name
        self._fn = fn

    def name(self) -> str:
        return self._name

    def check(self) -> None:
        self._fn()


class HealthManager:

    def __init__(self, version: str):
        self.version = version
        self._started = time.monotonic()
        self._checkers: List[HealthChecker] = []
        self._ready = False
        self._lock = threading.Lock()

    def add_checker(self, checker: HealthChecker) -> None:
        with self._lock:
            self._checkers.append(checker)

    def set_ready(self, ready: bool) -> None:
        with self._lock:
            self._ready = ready

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def uptime(self) -> float:
        return time.monotonic() - self._started

    def _payload(self, status: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "version": self.version,
            "uptime": format_uptime(self.uptime()),
        }
        if details:
            payload["details"] = details
        return payload

    def health(self) -> Tuple[int, Dict[str, Any]]:
        """Run every checker. Returns (http_status, payload)."""
        with self._lock:
            checkers = list(self._checkers)

        failures: Dict[str, Any] = {}
        for checker in checkers:
            try:
                checker.check()
            except Exception as e:
                failures[checker.name()] = str(e)

        if failures:
            return 503, self._payload(STATUS_UNHEALTHY, failures)
        return 200, self._payload(STATUS_HEALTHY)

    def ready(self) -> Tuple[int, Dict[str, Any]]:
        if self.is_ready():
            return 200, self._payload("ready")
        return 503, self._payload("not ready")

    def live(self) -> Tuple[int, Dict[str, Any]]:
        return 200, self._payload("alive")
