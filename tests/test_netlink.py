"""Tests for translating pyroute2 tc messages into TcObjects."""

from tcexporter.tc.netlink import _to_object


class _Nla:
    """Stand-in for a decoded pyroute2 message or attribute."""

    def __init__(self, fields=None, attrs=None):
        self._fields = fields or {}
        self._attrs = attrs or {}

    def __getitem__(self, key):
        return self._fields[key]

    def get_attr(self, name):
        return self._attrs.get(name)


def _make_msg(**attrs):
    return _Nla(fields={"index": 3, "handle": 0x10000, "parent": 0xFFFFFFFF}, attrs=attrs)


def test_stats_blocks_are_translated():
    msg = _make_msg(
        TCA_KIND="htb",
        TCA_STATS=_Nla(fields={"bytes": 100, "packets": 2, "drop": 1, "overlimits": 0,
                               "bps": 50, "pps": 1, "qlen": 0, "backlog": 0}),
        TCA_STATS2=_Nla(attrs={
            "TCA_STATS_BASIC": _Nla(fields={"bytes": 200, "packets": 4}),
            "TCA_STATS_QUEUE": _Nla(fields={"qlen": 1, "backlog": 60, "drops": 3,
                                            "requeues": 2, "overlimits": 5}),
        }),
        TCA_XSTATS=_Nla(fields={"lends": 7, "borrows": 8, "giants": 0, "tokens": 9, "ctokens": 10}),
    )

    obj = _to_object(msg)

    assert obj.kind == "htb"
    assert obj.ifindex == 3
    assert obj.stats.bytes == 100
    assert obj.stats.drops == 1
    assert obj.stats.bps == 50
    assert obj.stats2.bytes == 200
    assert obj.stats2.requeues == 2
    assert obj.stats2.overlimits == 5
    assert obj.xstats_for("htb").tokens == 9


def test_missing_blocks_stay_none():
    obj = _to_object(_make_msg(TCA_KIND="pfifo_fast"))
    assert obj.stats is None
    assert obj.stats2 is None
    assert obj.xstats is None


def test_undecoded_xstats_dropped():
    obj = _to_object(_make_msg(TCA_KIND="fq_codel", TCA_XSTATS=_Nla(fields={"value": "00:01"})))
    assert obj.xstats is None
