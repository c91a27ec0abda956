"""
HTTP front end: the metrics endpoint plus /health, /ready and /live.

Each request is handled on its own thread. The metrics path is looked up
in the current config per request, so a reloaded path applies without a
restart; address and port changes need one.
"""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tcexporter import __version__
from tcexporter.collector.registry import CollectorRegistry
from tcexporter.config.manager import ConfigManager
from tcexporter.config.models import Config
from tcexporter.errors import LimiterClosedError, RateLimitedError
from tcexporter.ratelimit import RateLimiter
from tcexporter.server.exposition import build_prometheus_registry
from tcexporter.server.health import FunctionChecker, HealthManager

log = logging.getLogger(__name__)


class _ExporterRequestHandler(BaseHTTPRequestHandler):

    server: "_ExporterHTTPServer"

    def do_GET(self):
        exporter = self.server.exporter
        path = urlsplit(self.path).path

        if path == exporter.metrics_path():
            self._serve_metrics(exporter)
        elif path == "/health":
            self._send_json(*exporter.health.health())
        elif path == "/ready":
            self._send_json(*exporter.health.ready())
        elif path == "/live":
            self._send_json(*exporter.health.live())
        else:
            self._send_text(404, "404 page not found\n")

    def _serve_metrics(self, exporter: "ExporterServer") -> None:
        if exporter.rate_limiter is not None:
            try:
                exporter.rate_limiter.get()
            except RateLimitedError:
                self._send_text(429, "Too many requests, please try again later.\n")
                return
            except LimiterClosedError:
                self._send_text(503, "Service is shutting down.\n")
                return

        body = generate_latest(exporter.prometheus_registry)
        self._send(200, CONTENT_TYPE_LATEST, body)

    def _send_json(self, status: int, payload: Dict[str, Any]) -> None:
        self._send(status, "application/json", json.dumps(payload).encode())

    def _send_text(self, status: int, text: str) -> None:
        self._send(status, "text/plain; charset=utf-8", text.encode())

    def _send(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


class _ExporterHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, exporter: "ExporterServer"):
        self.exporter = exporter
        super().__init__(address, _ExporterRequestHandler)


class ExporterServer:
    """Owns the HTTP server and the pieces a request needs."""

    def __init__(
        self,
        registry: CollectorRegistry,
        config_manager: ConfigManager,
        rate_limiter: Optional[RateLimiter] = None,
        enable_default_prom_reg: bool = False,
        version: str = __version__,
    ):
        self.registry = registry
        self.config_manager = config_manager
        self.rate_limiter = rate_limiter
        self.version = version
        self.prometheus_registry = build_prometheus_registry(
            registry, version, enable_default_collectors=enable_default_prom_reg
        )
        self.health = HealthManager(version)
        self.health.add_checker(FunctionChecker("collectors", self._check_collectors))
        if rate_limiter is not None:
            self.health.add_checker(FunctionChecker("ratelimit", self._check_rate_limiter))

        self._httpd: Optional[_ExporterHTTPServer] = None
        self._bound: Optional[Config] = None
        self._serving = False
        self._stop_lock = threading.Lock()
        self._stopped = False

    def _check_collectors(self) -> None:
        if not self.registry.get_enabled_collectors():
            raise RuntimeError("no enabled collectors")

    def _check_rate_limiter(self) -> None:
        if self.rate_limiter is not None and self.rate_limiter.is_closed():
            raise RuntimeError("rate limiter is closed")

    def metrics_path(self) -> str:
        return self.config_manager.get_config().metrics_path

    @property
    def server_address(self):
        return self._httpd.server_address if self._httpd else None

    def bind(self) -> None:
        config = self.config_manager.get_config()
        self._httpd = _ExporterHTTPServer((config.address, config.port), self)
        self._bound = config
        log.info("Listening on %s, metrics at %s", config.bind_address(), config.metrics_path)

    def serve_forever(self) -> None:
        if self._httpd is None:
            self.bind()
        self._serving = True
        self.health.set_ready(True)
        self._httpd.serve_forever()

    def on_config_reload(self, config: Config) -> None:
        """Reload hook: warns about settings that only apply after restart."""
        if self._bound is None:
            return
        if (config.address, config.port) != (self._bound.address, self._bound.port):
            log.warning("Bind address changed to %s; restart to apply", config.bind_address())
        if config.metrics_path != self._bound.metrics_path:
            log.info("Metrics path is now %s", config.metrics_path)
        self._bound = self._bound.model_copy(update={"metrics_path": config.metrics_path})

    def stop(self) -> None:
        """Idempotent. A concurrent caller returns once shutdown has finished."""
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

            self.health.set_ready(False)
            self.config_manager.stop_watching()
            if self.rate_limiter is not None:
                self.rate_limiter.stop()
            if self._httpd is not None:
                if self._serving:
                    self._httpd.shutdown()
                self._httpd.server_close()
        log.info("Exporter stopped")
