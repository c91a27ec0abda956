"""
Mock traffic-control data source.

Produces fake but plausible qdisc and class statistics so the exporter can
be developed and demoed without CAP_NET_ADMIN or real namespaces. Every
supported kind appears somewhere in the simulated host, and counters only
ever grow between reads.
"""

import random
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from tcexporter.tc.objects import (
    CbqXStats,
    ChokeXStats,
    CodelXStats,
    FqCodelXStats,
    FqXStats,
    HfscXStats,
    HtbXStats,
    Interface,
    PieXStats,
    RedXStats,
    SfbXStats,
    SfqXStats,
    Stats,
    Stats2,
    TcObject,
    XStats,
)

ROOT = 0xFFFFFFFF

# namespace -> [(device, [(kind, handle, parent), ...]), ...]
_QDISC_LAYOUT: Dict[str, List[Tuple[str, List[Tuple[str, int, int]]]]] = {
    "default": [
        ("eth0", [("fq_codel", 0x00000000, ROOT)]),
        ("eth1", [("htb", 0x00010000, ROOT), ("sfq", 0x00100000, 0x00010010)]),
        ("ens3", [("fq", 0x80000000, ROOT)]),
    ],
    "blue": [
        ("veth0a1b", [("codel", 0x80010000, ROOT)]),
        ("veth1c2d", [("pie", 0x80020000, ROOT)]),
    ],
    "lab": [
        ("eth0", [("red", 0x00010000, ROOT)]),
        ("eth1", [("choke", 0x00010000, ROOT)]),
        ("eth2", [("sfb", 0x00010000, ROOT)]),
        ("eth3", [("cbq", 0x00010000, ROOT)]),
        ("eth4", [("hfsc", 0x00010000, ROOT)]),
    ],
}

# (namespace, device) -> [(kind, handle, parent), ...]
_CLASS_LAYOUT: Dict[Tuple[str, str], List[Tuple[str, int, int]]] = {
    ("default", "eth1"): [("htb", 0x00010001, ROOT), ("htb", 0x00010010, 0x00010001),
                          ("htb", 0x00010020, 0x00010001)],
    ("lab", "eth4"): [("hfsc", 0x00010001, 0x00010000)],
}

# Kinds reported with only the legacy stats block, like older kernels.
_LEGACY_ONLY = {"cbq"}


@dataclass
class _Counters:
    bytes: int = 0
    packets: int = 0
    drops: int = 0
    overlimits: int = 0
    requeues: int = 0
    bps: int = 0
    pps: int = 0
    qlen: int = 0
    backlog: int = 0


class MockTCDataSource:

    def __init__(self, seed: int = 42):
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, str, str, int], _Counters] = {}
        self._ifindex: Dict[Tuple[str, str], int] = {}
        for namespace, devices in _QDISC_LAYOUT.items():
            for i, (device, _) in enumerate(devices, start=2):
                self._ifindex[(namespace, device)] = i

    def list_namespaces(self) -> List[str]:
        return list(_QDISC_LAYOUT)

    def list_interfaces(self, namespace: str) -> List[Interface]:
        if namespace not in _QDISC_LAYOUT:
            raise LookupError(f"network namespace {namespace!r} not found")
        return [
            Interface(index=self._ifindex[(namespace, device)], name=device)
            for device, _ in _QDISC_LAYOUT[namespace]
        ]

    def _device(self, ifindex: int, namespace: str) -> str:
        for (ns, device), index in self._ifindex.items():
            if ns == namespace and index == ifindex:
                return device
        raise LookupError(f"no interface with index {ifindex} in {namespace!r}")

    def list_qdiscs(self, ifindex: int, namespace: str) -> List[TcObject]:
        device = self._device(ifindex, namespace)
        layout = dict(_QDISC_LAYOUT[namespace])[device]
        return [self._build("qdisc", namespace, device, ifindex, entry) for entry in layout]

    def list_classes(self, ifindex: int, namespace: str) -> List[TcObject]:
        device = self._device(ifindex, namespace)
        layout = _CLASS_LAYOUT.get((namespace, device), [])
        return [self._build("class", namespace, device, ifindex, entry) for entry in layout]

    def _advance(self, key: Tuple[str, str, str, int]) -> _Counters:
        """Move one object's counters forward by roughly two seconds of traffic."""
        rng = self._rng
        c = self._counters.setdefault(key, _Counters())

        packets = rng.randint(200, 2000)
        avg_size = rng.randint(200, 1500)
        c.packets += packets
        c.bytes += packets * avg_size
        c.pps = packets // 2
        c.bps = packets * avg_size // 2

        # Drops and overlimits only under occasional bursts
        if rng.random() > 0.8:
            c.drops += rng.randint(1, 20)
            c.overlimits += rng.randint(1, 40)
        if rng.random() > 0.95:
            c.requeues += 1

        c.qlen = rng.randint(0, 30)
        c.backlog = c.qlen * avg_size
        return c

    def _build(self, family: str, namespace: str, device: str, ifindex: int,
               entry: Tuple[str, int, int]) -> TcObject:
        kind, handle, parent = entry
        with self._lock:
            c = self._advance((family, namespace, device, handle))
            xstats = _XSTATS_BUILDERS[kind](self._rng, c)

        stats = Stats(bytes=c.bytes, packets=c.packets, drops=c.drops, overlimits=c.overlimits,
                      bps=c.bps, pps=c.pps, qlen=c.qlen, backlog=c.backlog)
        stats2: Optional[Stats2] = None
        if kind not in _LEGACY_ONLY:
            stats2 = Stats2(bytes=c.bytes, packets=c.packets, drops=c.drops,
                            overlimits=c.overlimits, qlen=c.qlen, backlog=c.backlog,
                            requeues=c.requeues)

        return TcObject(kind=kind, ifindex=ifindex, handle=handle, parent=parent,
                        stats=stats, stats2=stats2, xstats=xstats)


def _codel(rng: random.Random, c: _Counters) -> XStats:
    dropping = 1 if c.qlen > 20 else 0
    return XStats(codel=CodelXStats(
        maxpacket=1514, count=c.drops, lastcount=max(0, c.drops - 1),
        ldelay=rng.randint(100, 5000), drop_next=rng.randint(0, 100000) if dropping else 0,
        drop_overlimit=c.overlimits // 4, ecn_mark=c.packets // 500, dropping=dropping,
        ce_mark=c.packets // 800,
    ))


def _cbq(rng: random.Random, c: _Counters) -> XStats:
    return XStats(cbq=CbqXStats(
        borrows=c.packets // 50, overactions=c.overlimits, avg_idle=rng.randint(0, 10000),
        undertime=rng.randint(0, 500),
    ))


def _choke(rng: random.Random, c: _Counters) -> XStats:
    return XStats(choke=ChokeXStats(
        early=c.drops // 2, pdrop=c.drops // 3, other=0, marked=c.packets // 1000,
        matched=c.drops // 6,
    ))


def _fq(rng: random.Random, c: _Counters) -> XStats:
    flows = rng.randint(10, 200)
    return XStats(fq=FqXStats(
        gc_flows=c.packets // 100, high_prio_packets=c.packets // 40,
        tcp_retrans=c.drops, throttled=c.overlimits, flows_plimit=c.drops // 5,
        pkts_too_long=0, allocation_errors=0, time_next_delayed_flow=rng.randint(0, 10 ** 6),
        flows=flows, inactive_flows=flows // 3, throttled_flows=rng.randint(0, 5),
        unthrottle_latency_ns=rng.randint(1000, 50000), ce_mark=c.packets // 900,
        horizon_drops=0, horizon_caps=0, fastpath_packets=c.packets // 2,
    ))


def _fq_codel(rng: random.Random, c: _Counters) -> XStats:
    return XStats(fq_codel=FqCodelXStats(
        maxpacket=1514, drop_overlimit=c.overlimits // 4, ecn_mark=c.packets // 600,
        new_flow_count=c.packets // 30, new_flows_len=rng.randint(0, 4),
        old_flows_len=rng.randint(0, 16), ce_mark=c.packets // 900,
        memory_usage=c.backlog * 2, drop_overmemory=0,
    ))


def _hfsc(rng: random.Random, c: _Counters) -> XStats:
    return XStats(hfsc=HfscXStats(level=1, period=c.packets // 1000, work=c.bytes,
                                  rtwork=c.bytes // 2))


def _htb(rng: random.Random, c: _Counters) -> XStats:
    return XStats(htb=HtbXStats(
        lends=c.packets // 3, borrows=c.packets // 10, giants=0,
        tokens=rng.randint(-5000, 20000), ctokens=rng.randint(0, 20000),
    ))


def _pie(rng: random.Random, c: _Counters) -> XStats:
    return XStats(pie=PieXStats(
        prob=rng.randint(0, 2 ** 16), delay=rng.randint(0, 20000),
        avg_dq_rate=c.bps, packets_in=c.packets, dropped=c.drops,
        overlimit=c.overlimits, maxq=max(c.qlen, 30), ecn_mark=c.packets // 700,
    ))


def _red(rng: random.Random, c: _Counters) -> XStats:
    return XStats(red=RedXStats(early=c.drops // 2, pdrop=c.drops // 4, other=0,
                                marked=c.packets // 1000))


def _sfb(rng: random.Random, c: _Counters) -> XStats:
    return XStats(sfb=SfbXStats(
        early_drop=c.drops // 2, penalty_drop=0, bucket_drop=c.drops // 4,
        queue_drop=c.drops // 8, child_drop=0, marked=c.packets // 1000,
        max_qlen=max(c.qlen, 30), max_prob=rng.randint(0, 2 ** 16),
        avg_prob=rng.randint(0, 2 ** 15),
    ))


def _sfq(rng: random.Random, c: _Counters) -> XStats:
    return XStats(sfq=SfqXStats(allot=rng.randint(-1514, 1514)))


_XSTATS_BUILDERS: Dict[str, Callable[[random.Random, _Counters], XStats]] = {
    "codel": _codel,
    "cbq": _cbq,
    "choke": _choke,
    "fq": _fq,
    "fq_codel": _fq_codel,
    "hfsc": _hfsc,
    "htb": _htb,
    "pie": _pie,
    "red": _red,
    "sfb": _sfb,
    "sfq": _sfq,
}
