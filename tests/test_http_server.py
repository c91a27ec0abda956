"""
Tests for the HTTP front end.

Starts an ExporterServer on a free local port in a background thread and
talks to it with httpx, the same way Prometheus would scrape it.
"""

import os
import socket
import tempfile
import threading
import time

import httpx
from prometheus_client.parser import text_string_to_metric_families

from tcexporter.collector.base import CollectorBase
from tcexporter.collector.config import CollectorConfig, MetricConfig
from tcexporter.config.manager import ConfigManager
from tcexporter.exporter import build_registry
from tcexporter.mock.generator import MockTCDataSource
from tcexporter.ratelimit import RateLimiter
from tcexporter.server.http_server import ExporterServer


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _write_config(tmpdir: str, port: int, metrics_path: str = "/metrics") -> str:
    path = os.path.join(tmpdir, "tc-exporter.yaml")
    with open(path, "w", encoding="utf-8") as fp:
        fp.write(f"address: 127.0.0.1\nport: {port}\nmetricsPath: {metrics_path}\n"
                 "log:\n  log_path: \"\"\n")
    return path


def _start_server(tmpdir: str, registry=None, limiter=None, metrics_path="/metrics"):
    port = _free_port()
    manager = ConfigManager(_write_config(tmpdir, port, metrics_path))
    manager.load_config()
    server = ExporterServer(registry or build_registry(MockTCDataSource()), manager,
                            rate_limiter=limiter)
    server.bind()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    time.sleep(0.2)  # let it bind
    return server, f"http://127.0.0.1:{port}"


def _families(text: str):
    return {f.name: f for f in text_string_to_metric_families(text)}


class _ExplodingCollector(CollectorBase):
    def __init__(self):
        super().__init__("exploding", "exploding", "always fails",
                         CollectorConfig(metrics={"x": MetricConfig(name="x", help="x")}))

    def collect_metrics(self, sink):
        raise RuntimeError("boom")


def test_metrics_endpoint_serves_tc_families():
    with tempfile.TemporaryDirectory() as tmpdir:
        server, base = _start_server(tmpdir)
        try:
            resp = httpx.get(f"{base}/metrics")
        finally:
            server.stop()

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    families = _families(resp.text)
    assert "qdisc_bytes_total" in families
    assert "class_bytes_total" in families
    assert "qdisc_htb_tokens" in families
    assert "tc_exporter_collection_passes" in families

    codel = families["qdisc_codel_ldelay"].samples
    assert codel[0].labels == {"namespace": "blue", "device": "veth0a1b", "kind": "codel"}


def test_faulting_collector_still_returns_200():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = build_registry(MockTCDataSource())
        registry.register(_ExplodingCollector())
        server, base = _start_server(tmpdir, registry=registry)
        try:
            resp = httpx.get(f"{base}/metrics")
        finally:
            server.stop()

    assert resp.status_code == 200
    families = _families(resp.text)
    assert "qdisc_bytes_total" in families
    failures = families["tc_exporter_collector_failures"].samples
    assert any(s.labels.get("collector") == "exploding" and s.value == 1 for s in failures)


def test_rate_limited_scrape_gets_429():
    with tempfile.TemporaryDirectory() as tmpdir:
        limiter = RateLimiter(interval=60, bucket_size=2)
        server, base = _start_server(tmpdir, limiter=limiter)
        try:
            codes = [httpx.get(f"{base}/metrics").status_code for _ in range(3)]
            # health endpoints are not rate limited
            health = httpx.get(f"{base}/live")
        finally:
            server.stop()

    assert codes == [200, 200, 429]
    assert health.status_code == 200


def test_closed_limiter_gets_503():
    with tempfile.TemporaryDirectory() as tmpdir:
        limiter = RateLimiter(interval=60, bucket_size=2)
        server, base = _start_server(tmpdir, limiter=limiter)
        try:
            limiter.stop()
            resp = httpx.get(f"{base}/metrics")
            health = httpx.get(f"{base}/health")
        finally:
            server.stop()

    assert resp.status_code == 503
    assert health.status_code == 503
    assert "ratelimit" in health.json()["details"]


def test_health_ready_live_payloads():
    with tempfile.TemporaryDirectory() as tmpdir:
        server, base = _start_server(tmpdir)
        try:
            health = httpx.get(f"{base}/health")
            ready = httpx.get(f"{base}/ready")
            live = httpx.get(f"{base}/live")
        finally:
            server.stop()

    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["timestamp"].endswith("Z")
    assert "uptime" in body
    assert "details" not in body

    assert ready.status_code == 200
    assert ready.json()["status"] == "ready"
    assert live.json()["status"] == "alive"


def test_unhealthy_when_no_collectors_enabled():
    with tempfile.TemporaryDirectory() as tmpdir:
        registry = build_registry(MockTCDataSource())
        for collector in registry.get_all_collectors():
            collector.set_enabled(False)
        server, base = _start_server(tmpdir, registry=registry)
        try:
            resp = httpx.get(f"{base}/health")
        finally:
            server.stop()

    assert resp.status_code == 503
    assert resp.json()["status"] == "unhealthy"
    assert "collectors" in resp.json()["details"]


def test_custom_metrics_path_and_404():
    with tempfile.TemporaryDirectory() as tmpdir:
        server, base = _start_server(tmpdir, metrics_path="/tc-metrics")
        try:
            custom = httpx.get(f"{base}/tc-metrics")
            default = httpx.get(f"{base}/metrics")
        finally:
            server.stop()

    assert custom.status_code == 200
    assert default.status_code == 404


def test_stop_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        server, _ = _start_server(tmpdir)
        server.stop()
        server.stop()
        assert not server.health.is_ready()
