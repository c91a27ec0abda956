"""Tests for config models and the duration/size parsers they rely on."""

from datetime import timedelta

import pydantic
import pytest

from tcexporter.config.models import Config, LogConfig
from tcexporter.units import format_uptime, parse_duration, parse_size


def _make_config(**overrides) -> Config:
    data = {"address": "127.0.0.1", "port": 9062, "metricsPath": "/metrics"}
    data.update(overrides)
    return Config.model_validate(data)


def test_defaults():
    config = Config()
    assert config.address == "127.0.0.1"
    assert config.port == 9062
    assert config.metrics_path == "/metrics"
    assert config.log.level == "debug"
    assert config.log.log_path == "/var/log/tc-exporter.log"
    assert config.log.max_size == "10MB"
    assert config.log.max_age == timedelta(days=7)


def test_yaml_style_keys():
    config = Config.model_validate({
        "address": "0.0.0.0",
        "port": 9100,
        "metricsPath": "/tc",
        "log": {"level": "INFO", "log_path": "/tmp/x.log", "max_size": "5MB", "max_age": "24h"},
    })
    assert config.metrics_path == "/tc"
    assert config.log.level == "info"
    assert config.log.max_age == timedelta(hours=24)
    assert config.log.max_bytes == 5_000_000


def test_missing_keys_use_defaults():
    config = Config.model_validate({"port": 9100})
    assert config.address == "127.0.0.1"
    assert config.metrics_path == "/metrics"


@pytest.mark.parametrize("port", [0, -1, 65536, 99999])
def test_port_out_of_range(port):
    with pytest.raises(pydantic.ValidationError):
        _make_config(port=port)


def test_privileged_port_allowed():
    assert _make_config(port=80).port == 80


@pytest.mark.parametrize("address", ["127.0.0.1", "::1", "0.0.0.0", "localhost",
                                     "metrics.example.com", "eth0", "enp3s0", "veth1a2b"])
def test_valid_addresses(address):
    assert _make_config(address=address).address == address


@pytest.mark.parametrize("address", ["", "not an address", "-bad.example.com", "example"])
def test_invalid_addresses(address):
    with pytest.raises(pydantic.ValidationError):
        _make_config(address=address)


@pytest.mark.parametrize("path", ["", "metrics", "/met?rics", "/a<b"])
def test_invalid_metrics_path(path):
    with pytest.raises(pydantic.ValidationError):
        _make_config(metricsPath=path)


def test_invalid_log_level():
    with pytest.raises(pydantic.ValidationError):
        LogConfig(level="verbose")


def test_log_path_rejects_invalid_chars():
    with pytest.raises(pydantic.ValidationError):
        LogConfig(log_path="/var/log/tc|exporter.log")


def test_max_size_too_long():
    with pytest.raises(pydantic.ValidationError):
        LogConfig(max_size="1" * 21)


def test_config_is_frozen():
    config = Config()
    with pytest.raises(pydantic.ValidationError):
        config.port = 1234


def test_bind_address_and_localhost():
    config = _make_config(address="localhost", port=9000)
    assert config.bind_address() == "localhost:9000"
    assert config.is_localhost()
    assert not _make_config(address="10.0.0.1").is_localhost()


@pytest.mark.parametrize("text,expected", [
    ("1s", timedelta(seconds=1)),
    ("500ms", timedelta(milliseconds=500)),
    ("168h", timedelta(days=7)),
    ("1h30m", timedelta(minutes=90)),
    ("2.5s", timedelta(seconds=2.5)),
    ("30", timedelta(seconds=30)),
])
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "1x", "1h foo"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)


@pytest.mark.parametrize("value", ["inf", "-inf", "nan", "1e400", "99999999999999h",
                                   float("inf"), float("nan"), 10 ** 400])
def test_parse_duration_rejects_unbounded(value):
    with pytest.raises(ValueError):
        parse_duration(value)


@pytest.mark.parametrize("max_age", [float("inf"), "inf", "99999999999999h"])
def test_unbounded_max_age_is_validation_error(max_age):
    with pytest.raises(pydantic.ValidationError):
        LogConfig(max_age=max_age)


@pytest.mark.parametrize("text,expected", [
    ("10MB", 10_000_000),
    ("512KiB", 512 * 1024),
    ("1024", 1024),
    ("1G", 1_000_000_000),
])
def test_parse_size(text, expected):
    assert parse_size(text) == expected


def test_parse_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_size("ten megabytes")


def test_format_uptime():
    assert format_uptime(5) == "5s"
    assert format_uptime(125) == "2m5s"
    assert format_uptime(3725) == "1h2m5s"
