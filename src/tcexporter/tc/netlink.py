"""
TC data source backed by rtnetlink via pyroute2.

Decoding of the netlink payloads is pyroute2's job. This module only
translates its messages into the TcObject shapes collectors understand.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from pyroute2 import IPRoute, NetNS, netns

from tcexporter.tc.objects import (
    DEFAULT_NAMESPACE,
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

log = logging.getLogger(__name__)

_XSTATS_TYPES = {
    "codel": CodelXStats,
    "cbq": CbqXStats,
    "choke": ChokeXStats,
    "fq": FqXStats,
    "fq_codel": FqCodelXStats,
    "hfsc": HfscXStats,
    "htb": HtbXStats,
    "pie": PieXStats,
    "red": RedXStats,
    "sfb": SfbXStats,
    "sfq": SfqXStats,
}


def _read(nla: Any, name: str) -> Optional[int]:
    try:
        value = nla[name]
    except (KeyError, IndexError, TypeError):
        return None
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode_stats(nla: Any) -> Optional[Stats]:
    if nla is None:
        return None
    return Stats(
        bytes=_read(nla, "bytes") or 0,
        packets=_read(nla, "packets") or 0,
        drops=_read(nla, "drop") or 0,
        overlimits=_read(nla, "overlimits") or 0,
        bps=_read(nla, "bps") or 0,
        pps=_read(nla, "pps") or 0,
        qlen=_read(nla, "qlen") or 0,
        backlog=_read(nla, "backlog") or 0,
    )


def _decode_stats2(nla: Any) -> Optional[Stats2]:
    if nla is None:
        return None
    basic = nla.get_attr("TCA_STATS_BASIC")
    queue = nla.get_attr("TCA_STATS_QUEUE")
    if basic is None and queue is None:
        return None

    stats2 = Stats2()
    if basic is not None:
        stats2.bytes = _read(basic, "bytes") or 0
        stats2.packets = _read(basic, "packets") or 0
    if queue is not None:
        stats2.qlen = _read(queue, "qlen") or 0
        stats2.backlog = _read(queue, "backlog") or 0
        stats2.drops = _read(queue, "drops") or 0
        stats2.requeues = _read(queue, "requeues") or 0
        stats2.overlimits = _read(queue, "overlimits") or 0
    return stats2


def _decode_xstats(kind: str, nla: Any) -> Optional[XStats]:
    """Map a decoded TCA_XSTATS payload onto the kind's dataclass.

    Returns None when pyroute2 left the payload undecoded for this kind.
    """
    cls = _XSTATS_TYPES.get(kind)
    if cls is None or nla is None:
        return None

    values: Dict[str, int] = {}
    for f in dataclasses.fields(cls):
        value = _read(nla, f.name)
        if value is not None:
            values[f.name] = value
    if not values:
        log.debug("No decodable xstats for kind %s", kind)
        return None
    return XStats(**{kind: cls(**values)})


def _to_object(msg: Any) -> TcObject:
    kind = msg.get_attr("TCA_KIND") or ""
    return TcObject(
        kind=kind,
        ifindex=msg["index"],
        handle=msg["handle"],
        parent=msg["parent"],
        stats=_decode_stats(msg.get_attr("TCA_STATS")),
        stats2=_decode_stats2(msg.get_attr("TCA_STATS2")),
        xstats=_decode_xstats(kind, msg.get_attr("TCA_XSTATS")),
    )


class NetlinkDataSource:
    """Reads qdiscs and classes from every network namespace on the host."""

    def __init__(self, include_loopback: bool = False):
        self.include_loopback = include_loopback

    @contextmanager
    def _connect(self, namespace: str):
        conn = IPRoute() if namespace == DEFAULT_NAMESPACE else NetNS(namespace)
        try:
            yield conn
        finally:
            conn.close()

    def list_namespaces(self) -> List[str]:
        return [DEFAULT_NAMESPACE] + sorted(netns.listnetns())

    def list_interfaces(self, namespace: str) -> List[Interface]:
        with self._connect(namespace) as conn:
            links = conn.get_links()

        interfaces = []
        for link in links:
            name = link.get_attr("IFLA_IFNAME")
            if name == "lo" and not self.include_loopback:
                continue
            interfaces.append(Interface(index=link["index"], name=name))
        return interfaces

    def list_qdiscs(self, ifindex: int, namespace: str) -> List[TcObject]:
        with self._connect(namespace) as conn:
            return [_to_object(msg) for msg in conn.get_qdiscs(index=ifindex)]

    def list_classes(self, ifindex: int, namespace: str) -> List[TcObject]:
        with self._connect(namespace) as conn:
            return [_to_object(msg) for msg in conn.get_classes(index=ifindex)]
