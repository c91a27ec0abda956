"""
Traffic-control objects as handed to collectors.

These mirror what the kernel reports over netlink for a qdisc or class:
a kind string, up to two generic stats blocks, and an optional
kind-specific extended statistics payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, List

DEFAULT_NAMESPACE = "default"


@dataclass
class Interface:
    index: int
    name: str


@dataclass
class Stats:
    """Legacy TCA_STATS block. The only place rate estimates (bps/pps) live."""

    bytes: int = 0
    packets: int = 0
    drops: int = 0
    overlimits: int = 0
    bps: int = 0
    pps: int = 0
    qlen: int = 0
    backlog: int = 0


@dataclass
class Stats2:
    """TCA_STATS2 block (basic + queue). Carries requeues, no rates."""

    bytes: int = 0
    packets: int = 0
    drops: int = 0
    overlimits: int = 0
    qlen: int = 0
    backlog: int = 0
    requeues: int = 0


# -- Extended statistics, one shape per kind --

@dataclass
class CodelXStats:
    maxpacket: int = 0
    count: int = 0
    lastcount: int = 0
    ldelay: int = 0
    drop_next: int = 0
    drop_overlimit: int = 0
    ecn_mark: int = 0
    dropping: int = 0
    ce_mark: int = 0


@dataclass
class CbqXStats:
    borrows: int = 0
    overactions: int = 0
    avg_idle: int = 0
    undertime: int = 0


@dataclass
class ChokeXStats:
    early: int = 0
    pdrop: int = 0
    other: int = 0
    marked: int = 0
    matched: int = 0


@dataclass
class FqXStats:
    gc_flows: int = 0
    high_prio_packets: int = 0
    tcp_retrans: int = 0
    throttled: int = 0
    flows_plimit: int = 0
    pkts_too_long: int = 0
    allocation_errors: int = 0
    time_next_delayed_flow: int = 0
    flows: int = 0
    inactive_flows: int = 0
    throttled_flows: int = 0
    unthrottle_latency_ns: int = 0
    ce_mark: int = 0
    horizon_drops: int = 0
    horizon_caps: int = 0
    fastpath_packets: int = 0


@dataclass
class FqCodelXStats:
    maxpacket: int = 0
    drop_overlimit: int = 0
    ecn_mark: int = 0
    new_flow_count: int = 0
    new_flows_len: int = 0
    old_flows_len: int = 0
    ce_mark: int = 0
    memory_usage: int = 0
    drop_overmemory: int = 0


@dataclass
class HfscXStats:
    level: int = 0
    period: int = 0
    work: int = 0
    rtwork: int = 0


@dataclass
class HtbXStats:
    lends: int = 0
    borrows: int = 0
    giants: int = 0
    tokens: int = 0
    ctokens: int = 0


@dataclass
class PieXStats:
    prob: int = 0
    delay: int = 0
    avg_dq_rate: int = 0
    packets_in: int = 0
    dropped: int = 0
    overlimit: int = 0
    maxq: int = 0
    ecn_mark: int = 0


@dataclass
class RedXStats:
    early: int = 0
    pdrop: int = 0
    other: int = 0
    marked: int = 0


@dataclass
class SfbXStats:
    early_drop: int = 0
    penalty_drop: int = 0
    bucket_drop: int = 0
    queue_drop: int = 0
    child_drop: int = 0
    marked: int = 0
    max_qlen: int = 0
    max_prob: int = 0
    avg_prob: int = 0


@dataclass
class SfqXStats:
    allot: int = 0


@dataclass
class XStats:
    """Kind-keyed union: at most one field is normally populated."""

    codel: Optional[CodelXStats] = None
    cbq: Optional[CbqXStats] = None
    choke: Optional[ChokeXStats] = None
    fq: Optional[FqXStats] = None
    fq_codel: Optional[FqCodelXStats] = None
    hfsc: Optional[HfscXStats] = None
    htb: Optional[HtbXStats] = None
    pie: Optional[PieXStats] = None
    red: Optional[RedXStats] = None
    sfb: Optional[SfbXStats] = None
    sfq: Optional[SfqXStats] = None

    def for_kind(self, kind: str) -> Optional[Any]:
        return {
            "codel": self.codel,
            "cbq": self.cbq,
            "choke": self.choke,
            "fq": self.fq,
            "fq_codel": self.fq_codel,
            "hfsc": self.hfsc,
            "htb": self.htb,
            "pie": self.pie,
            "red": self.red,
            "sfb": self.sfb,
            "sfq": self.sfq,
        }.get(kind)


@dataclass
class TcObject:
    """A qdisc or class attached to an interface."""

    kind: str
    ifindex: int = 0
    handle: int = 0
    parent: int = 0
    stats: Optional[Stats] = None
    stats2: Optional[Stats2] = None
    xstats: Optional[XStats] = None

    def xstats_for(self, kind: str) -> Optional[Any]:
        if self.xstats is None:
            return None
        return self.xstats.for_kind(kind)


class TCDataSource(Protocol):
    """Where collectors read traffic-control state from."""

    def list_namespaces(self) -> List[str]: ...

    def list_interfaces(self, namespace: str) -> List[Interface]: ...

    def list_qdiscs(self, ifindex: int, namespace: str) -> List[TcObject]: ...

    def list_classes(self, ifindex: int, namespace: str) -> List[TcObject]: ...
