"""Terminal views of a collection pass using Rich."""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tcexporter import __version__
from tcexporter.collector.registry import CollectionResult, CollectorRegistry
from tcexporter.metrics import MetricSink, Sample

log = logging.getLogger(__name__)

# Columns for the generic qdisc overview, in display order
_OVERVIEW_COLUMNS = [
    ("bytes_total", "Bytes"),
    ("packets_total", "Packets"),
    ("drops_total", "Drops"),
    ("overlimits_total", "Overlimits"),
    ("requeues_total", "Requeues"),
    ("qlen_total", "Qlen"),
    ("backlog_total", "Backlog"),
    ("bps", "B/s"),
]


def _human(value: float) -> str:
    for unit in ("", "K", "M", "G", "T"):
        if abs(value) < 1000:
            return f"{value:.0f}{unit}" if unit == "" else f"{value:.1f}{unit}"
        value /= 1000
    return f"{value:.1f}P"


def _drop_color(drops: float, packets: float) -> str:
    if packets == 0 or drops / packets < 0.001:
        return "green"
    elif drops / packets < 0.01:
        return "yellow"
    return "red"


def build_overview_table(sink: MetricSink, family: str = "qdisc") -> Table:
    """One row per (namespace, device) from the generic family counters."""
    rows: Dict[Tuple[str, str], Dict[str, float]] = {}
    prefix = family + "_"
    for sample in sink:
        name = sample.descriptor.name
        if not name.startswith(prefix) or sample.descriptor.label_names != ("namespace", "device"):
            continue
        key = (sample.label_values[0], sample.label_values[1])
        row = rows.setdefault(key, {})
        # Several objects per device are summed
        metric = name[len(prefix):]
        row[metric] = row.get(metric, 0.0) + sample.value

    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Namespace", style="dim")
    table.add_column("Device")
    for _, title in _OVERVIEW_COLUMNS:
        table.add_column(title, justify="right")

    for (namespace, device), row in rows.items():
        color = _drop_color(row.get("drops_total", 0), row.get("packets_total", 0))
        cells = []
        for metric, _ in _OVERVIEW_COLUMNS:
            if metric not in row:
                cells.append("[dim]-[/dim]")
            elif metric == "drops_total":
                cells.append(f"[{color}]{_human(row[metric])}[/{color}]")
            else:
                cells.append(_human(row[metric]))
        table.add_row(namespace, device, *cells)
    return table


def build_kind_table(sink: MetricSink) -> Table:
    """Extended statistics, one row per per-kind sample."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Namespace", style="dim")
    table.add_column("Device")
    table.add_column("Kind", style="magenta")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    for sample in sink:
        if sample.descriptor.label_names != ("namespace", "device", "kind"):
            continue
        namespace, device, kind = sample.label_values
        metric = sample.descriptor.name[len(f"qdisc_{kind}_"):]
        table.add_row(namespace, device, kind, metric, f"{sample.value:,.0f}")
    return table


def build_display(sink: MetricSink, result: CollectionResult, source_name: str) -> Group:
    header = Text(f"  tc-exporter v{__version__}  |  {source_name}", style="bold white on blue")
    header.append(f"\n  {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')}  ", style="dim")
    if result.failed:
        header.append(f"  FAILED: {', '.join(result.failed)}", style="bold red")
    else:
        header.append(f"  {result.collected} collectors, {len(sink)} samples", style="bold green")

    return Group(
        Panel(header, border_style="blue"),
        Panel(build_overview_table(sink, "qdisc"), title="Qdiscs", border_style="cyan"),
        Panel(build_overview_table(sink, "class"), title="Classes", border_style="cyan"),
        Panel(build_kind_table(sink), title="Extended statistics", border_style="cyan"),
    )


def collect_once(registry: CollectorRegistry) -> Tuple[MetricSink, CollectionResult]:
    sink = MetricSink()
    result = registry.collect_all(sink)
    return sink, result


def run_dashboard(registry: CollectorRegistry, source_name: str, refresh_interval: float = 2.0):
    console = Console()
    log.info("Starting dashboard: source=%s, refresh=%.1fs", source_name, refresh_interval)

    with Live(console=console, refresh_per_second=1, screen=True) as live:
        try:
            while True:
                sink, result = collect_once(registry)
                live.update(build_display(sink, result, source_name))
                time.sleep(refresh_interval)
        except KeyboardInterrupt:
            pass

    console.print("\n[dim]Dashboard stopped.[/dim]")


def sample_record(sample: Sample) -> Dict[str, object]:
    return {
        "metric": sample.descriptor.name,
        "labels": sample.labels,
        "value": sample.value,
    }


def run_jsonl(registry: CollectorRegistry, source_name: str, refresh_interval: float = 2.0,
              iterations: Optional[int] = None):
    """Non-interactive mode: one JSON object per sample per line."""
    log.info("Starting JSONL output: source=%s, refresh=%.1fs", source_name, refresh_interval)
    count = 0
    try:
        while iterations is None or count < iterations:
            sink, _ = collect_once(registry)
            timestamp = datetime.now(timezone.utc).isoformat()
            lines: List[str] = []
            for sample in sink:
                record = sample_record(sample)
                record["timestamp"] = timestamp
                record["source"] = source_name
                lines.append(json.dumps(record))
            if lines:
                sys.stdout.write("\n".join(lines) + "\n")
                sys.stdout.flush()
            count += 1
            if iterations is None or count < iterations:
                time.sleep(refresh_interval)
    except KeyboardInterrupt:
        pass
