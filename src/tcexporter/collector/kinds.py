"""
Per-kind metric catalogues and the handlers that read them.

A handler supplies the two steps a QdiscCollector delegates: deciding
whether an object belongs to it (validate) and turning the object into
samples (collect_into). One handler instance exists per kind; the
collector class itself never changes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, NamedTuple, Optional

from tcexporter.metrics import MetricSink
from tcexporter.tc.objects import TcObject

if TYPE_CHECKING:
    from tcexporter.collector.qdisc import QdiscCollector

log = logging.getLogger(__name__)


class MetricField(NamedTuple):
    help: str
    read: Callable[[Any], float]


CODEL_METRICS: Dict[str, MetricField] = {
    "ce_mark": MetricField("CoDel packets marked with CE", lambda x: x.ce_mark),
    "count": MetricField("CoDel packets dropped since entering the dropping state", lambda x: x.count),
    "drop_next": MetricField("CoDel time until next drop", lambda x: x.drop_next),
    "drop_overlimit": MetricField("CoDel packets dropped over the queue limit", lambda x: x.drop_overlimit),
    "dropping": MetricField("CoDel dropping state (1 when dropping)", lambda x: x.dropping),
    "ecn_mark": MetricField("CoDel packets ECN marked", lambda x: x.ecn_mark),
    "ldelay": MetricField("CoDel sojourn time of the last dequeued packet", lambda x: x.ldelay),
    "max_packet": MetricField("CoDel largest packet seen", lambda x: x.maxpacket),
}

CBQ_METRICS: Dict[str, MetricField] = {
    "avg_idle": MetricField("CBQ average idle time", lambda x: x.avg_idle),
    "borrows": MetricField("CBQ borrows", lambda x: x.borrows),
    "overactions": MetricField("CBQ overactions", lambda x: x.overactions),
    "undertime": MetricField("CBQ undertime", lambda x: x.undertime),
}

CHOKE_METRICS: Dict[str, MetricField] = {
    "early": MetricField("CHOKe early drops", lambda x: x.early),
    "marked": MetricField("CHOKe packets marked", lambda x: x.marked),
    "matched": MetricField("CHOKe drops due to flow match", lambda x: x.matched),
    "other": MetricField("CHOKe drops for other reasons", lambda x: x.other),
    "pdrop": MetricField("CHOKe drops due to queue limits", lambda x: x.pdrop),
}

FQ_METRICS: Dict[str, MetricField] = {
    "gc_flows": MetricField("FQ flows garbage collected", lambda x: x.gc_flows),
    "high_prio_packets": MetricField("FQ high priority packets", lambda x: x.high_prio_packets),
    "tcp_retrans": MetricField("FQ TCP retransmits", lambda x: x.tcp_retrans),
    "throttled": MetricField("FQ throttled events", lambda x: x.throttled),
    "flows_plimit": MetricField("FQ drops due to per-flow packet limit", lambda x: x.flows_plimit),
    "packets_too_long": MetricField("FQ packets dropped for exceeding max length", lambda x: x.pkts_too_long),
    "allocation_errors": MetricField("FQ flow allocation errors", lambda x: x.allocation_errors),
    "time_next_delayed_flow": MetricField("FQ time until the next delayed flow", lambda x: x.time_next_delayed_flow),
    "flows": MetricField("FQ flows", lambda x: x.flows),
    "inactive_flows": MetricField("FQ inactive flows", lambda x: x.inactive_flows),
    "throttled_flows": MetricField("FQ throttled flows", lambda x: x.throttled_flows),
    "unthrottle_latency_ns": MetricField("FQ unthrottle latency in nanoseconds", lambda x: x.unthrottle_latency_ns),
    "ce_mark": MetricField("FQ packets marked with CE", lambda x: x.ce_mark),
    "horizon_drops": MetricField("FQ packets dropped beyond the time horizon", lambda x: x.horizon_drops),
    "horizon_caps": MetricField("FQ packets capped to the time horizon", lambda x: x.horizon_caps),
    "fastpath_packets": MetricField("FQ packets sent through the fast path", lambda x: x.fastpath_packets),
}

FQ_CODEL_METRICS: Dict[str, MetricField] = {
    "ce_mark": MetricField("FQ-CoDel packets marked with CE", lambda x: x.ce_mark),
    "drop_overlimit": MetricField("FQ-CoDel packets dropped over the queue limit", lambda x: x.drop_overlimit),
    "drop_overmemory": MetricField("FQ-CoDel packets dropped over the memory limit", lambda x: x.drop_overmemory),
    "ecn_mark": MetricField("FQ-CoDel packets ECN marked", lambda x: x.ecn_mark),
    "max_packet": MetricField("FQ-CoDel largest packet seen", lambda x: x.maxpacket),
    "memory_usage": MetricField("FQ-CoDel memory usage in bytes", lambda x: x.memory_usage),
    "new_flow_count": MetricField("FQ-CoDel new flows created", lambda x: x.new_flow_count),
    "new_flows_len": MetricField("FQ-CoDel length of the new flows list", lambda x: x.new_flows_len),
    "old_flows_len": MetricField("FQ-CoDel length of the old flows list", lambda x: x.old_flows_len),
}

HFSC_METRICS: Dict[str, MetricField] = {
    "level": MetricField("HFSC class level", lambda x: x.level),
    "period": MetricField("HFSC period", lambda x: x.period),
    "rt_work": MetricField("HFSC real-time work in bytes", lambda x: x.rtwork),
    "work": MetricField("HFSC total work in bytes", lambda x: x.work),
}

HTB_METRICS: Dict[str, MetricField] = {
    "borrows": MetricField("HTB borrows from parent", lambda x: x.borrows),
    "ctokens": MetricField("HTB ceil tokens", lambda x: x.ctokens),
    "giants": MetricField("HTB packets larger than the MTU", lambda x: x.giants),
    "lends": MetricField("HTB lends to children", lambda x: x.lends),
    "tokens": MetricField("HTB rate tokens", lambda x: x.tokens),
}

PIE_METRICS: Dict[str, MetricField] = {
    "avg_dq_rate": MetricField("PIE average dequeue rate", lambda x: x.avg_dq_rate),
    "delay": MetricField("PIE current queue delay", lambda x: x.delay),
    "dropped": MetricField("PIE packets dropped", lambda x: x.dropped),
    "ecn_mark": MetricField("PIE packets ECN marked", lambda x: x.ecn_mark),
    "maxq": MetricField("PIE maximum queue size", lambda x: x.maxq),
    "overlimit": MetricField("PIE drops over the queue limit", lambda x: x.overlimit),
    "packets_in": MetricField("PIE packets enqueued", lambda x: x.packets_in),
    "prob": MetricField("PIE drop probability", lambda x: x.prob),
}

RED_METRICS: Dict[str, MetricField] = {
    "early": MetricField("RED early drops", lambda x: x.early),
    "marked": MetricField("RED packets marked", lambda x: x.marked),
    "other": MetricField("RED drops for other reasons", lambda x: x.other),
    "pdrop": MetricField("RED drops due to queue limits", lambda x: x.pdrop),
}

SFB_METRICS: Dict[str, MetricField] = {
    "avg_prob": MetricField("SFB average marking probability", lambda x: x.avg_prob),
    "bucket_drop": MetricField("SFB drops due to bucket limits", lambda x: x.bucket_drop),
    "child_drop": MetricField("SFB drops in the child qdisc", lambda x: x.child_drop),
    "early_drop": MetricField("SFB early drops", lambda x: x.early_drop),
    "marked": MetricField("SFB packets marked", lambda x: x.marked),
    "max_prob": MetricField("SFB maximum marking probability", lambda x: x.max_prob),
    "max_qlen": MetricField("SFB maximum bucket queue length", lambda x: x.max_qlen),
    "penalty_drop": MetricField("SFB drops of penalized flows", lambda x: x.penalty_drop),
    "queue_drop": MetricField("SFB drops due to queue limits", lambda x: x.queue_drop),
}

SFQ_METRICS: Dict[str, MetricField] = {
    "allot": MetricField("SFQ allotment", lambda x: x.allot),
}

KIND_METRICS: Dict[str, Dict[str, MetricField]] = {
    "codel": CODEL_METRICS,
    "cbq": CBQ_METRICS,
    "choke": CHOKE_METRICS,
    "fq": FQ_METRICS,
    "fq_codel": FQ_CODEL_METRICS,
    "hfsc": HFSC_METRICS,
    "htb": HTB_METRICS,
    "pie": PIE_METRICS,
    "red": RED_METRICS,
    "sfb": SFB_METRICS,
    "sfq": SFQ_METRICS,
}

# Help text for the generic qdisc/class families. The {family} placeholder
# is filled with "qdisc" or "class".
BASIC_METRICS: Dict[str, str] = {
    "bytes_total": "Bytes sent by the {family}",
    "packets_total": "Packets sent by the {family}",
    "drops_total": "Packets dropped by the {family}",
    "overlimits_total": "Overlimit events on the {family}",
    "bps": "Rate estimate in bytes per second",
    "pps": "Rate estimate in packets per second",
    "qlen_total": "Current {family} queue length in packets",
    "backlog_total": "Current {family} backlog in bytes",
    "requeues_total": "Packets requeued by the {family}",
}


class XStatsHandler:
    """Reads one kind's extended statistics by explicit field lookup."""

    def __init__(self, kind: str, fields: Optional[Dict[str, MetricField]] = None):
        self.kind = kind
        self.fields = fields if fields is not None else KIND_METRICS[kind]

    def validate(self, obj: TcObject) -> bool:
        return obj.kind == self.kind

    def collect_into(self, collector: "QdiscCollector", sink: MetricSink,
                     namespace: str, device: str, obj: TcObject) -> None:
        xstats = obj.xstats_for(self.kind)
        if xstats is None:
            log.debug("No %s xstats on %s/%s, skipping", self.kind, namespace, device)
            return

        for metric in collector.supported_metrics():
            field = self.fields.get(metric)
            if field is None:
                log.warning("Unsupported metric %r for kind %s, skipping", metric, self.kind)
                continue
            descriptor = collector.get_metric(metric)
            if descriptor is None:
                continue
            sink.emit(descriptor, field.read(xstats), namespace, device, self.kind)


class BasicStatsHandler:
    """Generic byte/packet/drop counters common to every qdisc or class.

    Counters come from stats2 when present, otherwise the legacy stats block.
    requeues only exist in stats2; bps/pps only exist in the legacy block.
    """

    def validate(self, obj: TcObject) -> bool:
        return True

    def collect_into(self, collector: "QdiscCollector", sink: MetricSink,
                     namespace: str, device: str, obj: TcObject) -> None:
        primary = obj.stats2 if obj.stats2 is not None else obj.stats
        if primary is None:
            log.debug("No stats on %s %s/%s, skipping", obj.kind, namespace, device)
            return

        values = {
            "bytes_total": primary.bytes,
            "packets_total": primary.packets,
            "drops_total": primary.drops,
            "overlimits_total": primary.overlimits,
            "qlen_total": primary.qlen,
            "backlog_total": primary.backlog,
        }
        if obj.stats2 is not None:
            values["requeues_total"] = obj.stats2.requeues
        if obj.stats is not None:
            values["bps"] = obj.stats.bps
            values["pps"] = obj.stats.pps

        for metric in collector.supported_metrics():
            if metric not in BASIC_METRICS:
                log.warning("Unsupported metric %r for %s, skipping", metric, collector.id())
                continue
            if metric not in values:
                continue
            descriptor = collector.get_metric(metric)
            if descriptor is None:
                continue
            sink.emit(descriptor, values[metric], namespace, device)
