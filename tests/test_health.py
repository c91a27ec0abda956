"""Tests for HealthManager status reporting."""

from tcexporter.server.health import FunctionChecker, HealthManager


def _failing():
    raise RuntimeError("netlink socket closed")


def test_healthy_without_checkers():
    status, payload = HealthManager("1.0.0").health()
    assert status == 200
    assert payload["status"] == "healthy"
    assert payload["version"] == "1.0.0"


def test_failing_checker_reports_details():
    manager = HealthManager("1.0.0")
    manager.add_checker(FunctionChecker("ok", lambda: None))
    manager.add_checker(FunctionChecker("netlink", _failing))

    status, payload = manager.health()
    assert status == 503
    assert payload["status"] == "unhealthy"
    assert payload["details"] == {"netlink": "netlink socket closed"}


def test_ready_follows_flag():
    manager = HealthManager("1.0.0")
    assert manager.ready()[0] == 503
    manager.set_ready(True)
    status, payload = manager.ready()
    assert status == 200
    assert payload["status"] == "ready"


def test_live_always_ok():
    status, payload = HealthManager("1.0.0").live()
    assert status == 200
    assert payload["status"] == "alive"
