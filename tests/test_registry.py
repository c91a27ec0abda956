"""Tests for CollectorRegistry registration, factories and collect_all isolation."""

import pytest

from tcexporter.collector.base import CollectorBase
from tcexporter.collector.config import CollectorConfig, MetricConfig
from tcexporter.collector.factory import QdiscCollectorFactory
from tcexporter.collector.registry import CollectorRegistry
from tcexporter.errors import (
    ConfigTypeError,
    DuplicateCollectorError,
    DuplicateFactoryError,
    FactoryNotFoundError,
    UnsupportedKindError,
)
from tcexporter.metrics import MetricSink
from tcexporter.mock.generator import MockTCDataSource


def _config(*metrics: str, enabled: bool = True) -> CollectorConfig:
    return CollectorConfig(
        enabled=enabled,
        metrics={m: MetricConfig(name=m, help=f"help for {m}") for m in metrics},
    )


class _StaticCollector(CollectorBase):
    """Emits each of its metrics once with a fixed value."""

    def __init__(self, collector_id: str, value: float = 1.0, enabled: bool = True):
        super().__init__(collector_id, collector_id, "static test collector",
                         _config("up", "items", enabled=enabled),
                         label_names=("source",), metric_prefix=f"{collector_id}_")
        self.value = value
        self.calls = 0

    def collect_metrics(self, sink):
        self.calls += 1
        for metric in self.supported_metrics():
            sink.emit(self.get_metric(metric), self.value, self.id())


class _FaultyCollector(_StaticCollector):
    """Emits one sample, then blows up while `failing` is set."""

    failing = True

    def collect_metrics(self, sink):
        self.calls += 1
        sink.emit(self.get_metric("up"), 1, self.id())
        if self.failing:
            raise RuntimeError("kernel said no")


def test_register_and_lookup():
    registry = CollectorRegistry()
    collector = _StaticCollector("a")
    registry.register(collector)

    assert registry.get_collector("a") is collector
    assert registry.get_collector("missing") is None
    assert registry.get_all_collectors() == [collector]


def test_duplicate_registration_keeps_first():
    registry = CollectorRegistry()
    first = _StaticCollector("dup")
    registry.register(first)

    with pytest.raises(DuplicateCollectorError):
        registry.register(_StaticCollector("dup", value=2.0))

    assert len(registry) == 1
    assert registry.get_collector("dup") is first


def test_unregister_missing_is_noop():
    registry = CollectorRegistry()
    registry.register(_StaticCollector("a"))
    registry.unregister("nope")
    registry.unregister("a")
    registry.unregister("a")
    assert len(registry) == 0


def test_enabled_view_filters_at_call_time():
    registry = CollectorRegistry()
    a = _StaticCollector("a")
    b = _StaticCollector("b")
    registry.register(a)
    registry.register(b)

    assert registry.get_enabled_collectors() == [a, b]
    b.set_enabled(False)
    assert registry.get_enabled_collectors() == [a]
    b.set_enabled(True)
    assert registry.get_enabled_collectors() == [a, b]


def test_disabled_collector_is_silent():
    registry = CollectorRegistry()
    on = _StaticCollector("on")
    off = _StaticCollector("off", enabled=False)
    registry.register(on)
    registry.register(off)

    sink = MetricSink()
    registry.collect_all(sink)

    assert off.calls == 0
    off_descriptors = set(off.descriptors())
    assert all(s.descriptor not in off_descriptors for s in sink)
    assert len(sink) == 2


def test_faulting_collector_does_not_hide_others():
    registry = CollectorRegistry()
    bad = _FaultyCollector("bad")
    good = _StaticCollector("good", value=7.0)
    registry.register(bad)
    registry.register(good)

    sink = MetricSink()
    result = registry.collect_all(sink)

    assert result.failed == ["bad"]
    assert result.collected == 1
    assert isinstance(bad.last_error, RuntimeError)
    good_samples = [s for s in sink if s.label_values == ("good",)]
    assert [s.value for s in good_samples] == [7.0, 7.0]
    # samples emitted before the fault are kept
    assert any(s.label_values == ("bad",) for s in sink)


def test_recovered_collector_clears_last_error():
    registry = CollectorRegistry()
    flaky = _FaultyCollector("flaky")
    registry.register(flaky)

    registry.collect_all(MetricSink())
    assert isinstance(flaky.last_error, RuntimeError)

    flaky.failing = False
    result = registry.collect_all(MetricSink())

    assert result.failed == []
    assert flaky.last_error is None


def test_samples_grouped_per_collector_in_registration_order():
    registry = CollectorRegistry()
    for cid in ("x", "y", "z"):
        registry.register(_StaticCollector(cid))

    sink = MetricSink()
    registry.collect_all(sink)

    order = [s.label_values[0] for s in sink]
    assert order == ["x", "x", "y", "y", "z", "z"]


def test_collect_stamps_last_collect():
    collector = _StaticCollector("a")
    assert collector.last_collect is None
    collector.collect(MetricSink())
    assert collector.last_collect is not None


def test_set_config_rejects_wrong_type():
    collector = _StaticCollector("a")
    with pytest.raises(ConfigTypeError):
        collector.set_config({"enabled": True})
    with pytest.raises(TypeError):
        collector.set_config("nonsense")


def test_set_config_rebuilds_descriptors():
    collector = _StaticCollector("a")
    assert collector.supported_metrics() == ["up", "items"]

    collector.set_config(_config("up"))
    assert collector.supported_metrics() == ["up"]
    assert collector.get_metric("items") is None


def test_factory_roundtrip_through_registry():
    registry = CollectorRegistry()
    registry.register_factory("qdisc", QdiscCollectorFactory(MockTCDataSource()))

    collector = registry.create_collector("qdisc", "htb")
    assert collector.id() == "qdisc_htb"


def test_duplicate_factory_rejected():
    registry = CollectorRegistry()
    factory = QdiscCollectorFactory(MockTCDataSource())
    registry.register_factory("qdisc", factory)
    with pytest.raises(DuplicateFactoryError):
        registry.register_factory("qdisc", factory)


def test_unknown_factory():
    registry = CollectorRegistry()
    with pytest.raises(FactoryNotFoundError):
        registry.create_collector("class", "htb")


def test_unregister_factory():
    registry = CollectorRegistry()
    registry.register_factory("qdisc", QdiscCollectorFactory(MockTCDataSource()))
    registry.unregister_factory("qdisc")
    registry.unregister_factory("qdisc")
    assert registry.get_factory("qdisc") is None


def test_factory_rejects_unknown_kind():
    factory = QdiscCollectorFactory(MockTCDataSource())
    with pytest.raises(UnsupportedKindError):
        factory.create_collector("mq")


def test_factory_supported_types():
    factory = QdiscCollectorFactory(MockTCDataSource())
    assert sorted(factory.get_supported_types()) == sorted([
        "codel", "cbq", "htb", "fq", "fq_codel", "choke",
        "pie", "red", "sfb", "sfq", "hfsc",
    ])


def test_factory_config_override():
    factory = QdiscCollectorFactory(MockTCDataSource())
    factory.add_config("htb", CollectorConfig(metrics={
        "tokens": MetricConfig(name="tokens", help="tokens"),
    }))

    assert factory.create_collector("htb").supported_metrics() == ["tokens"]

    factory.remove_config("htb")
    assert len(factory.create_collector("htb").supported_metrics()) == 5
