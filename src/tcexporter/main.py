"""
tc-exporter entry point.

Usage:
    tcexporter -c /etc/uos-exporter/tc-exporter.yaml    Serve metrics
    tcexporter --mock --use_ratelimit                   Serve simulated data
    tcexporter --mock dump                              One pass, printed as tables
    tcexporter --mock top --output jsonl                Stream samples
    tcexporter probe --url http://127.0.0.1:9062        Check a running exporter
"""

from __future__ import annotations

import logging
import signal
import threading

import click

from tcexporter import __version__
from tcexporter.config.manager import ConfigManager
from tcexporter.config.models import DEFAULT_CONFIG_PATH, Config
from tcexporter.errors import ConfigError
from tcexporter.exporter import build_registry
from tcexporter.logsetup import DATE_FORMAT, LOG_FORMAT, setup_logging
from tcexporter.ratelimit import RateLimiter
from tcexporter.server.http_server import ExporterServer
from tcexporter.units import parse_duration


log = logging.getLogger("tcexporter")


class DurationType(click.ParamType):
    """Accepts Go-style durations such as 1s, 500ms or 1m30s. Yields seconds."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, float):
            return value
        try:
            return parse_duration(value).total_seconds()
        except ValueError as e:
            self.fail(str(e), param, ctx)


DURATION = DurationType()


def _make_source(mock: bool):
    if mock:
        from tcexporter.mock.generator import MockTCDataSource
        return MockTCDataSource(), "mock"

    from tcexporter.tc.netlink import NetlinkDataSource
    return NetlinkDataSource(), "netlink"


def _apply_logging(config: Config, verbose: bool) -> None:
    try:
        setup_logging(config.log, verbose=verbose)
    except OSError as e:
        setup_logging(config.log.model_copy(update={"log_path": ""}), verbose=verbose)
        log.warning("File logging disabled: %s", e)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tcexporter")
@click.option("-c", "--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True,
              help="Path to the YAML config file")
@click.option("--mock", is_flag=True, default=False, help="Use simulated tc statistics")
@click.option("--enable-default-prom-reg", is_flag=True, default=False,
              help="Also export process, platform and GC metrics")
@click.option("--use_ratelimit", is_flag=True, default=False, help="Rate limit the metrics endpoint")
@click.option("--rate_limit_interval", type=DURATION, default="1s", show_default=True,
              help="Token refill interval")
@click.option("--rate_limit_size", type=int, default=100, show_default=True,
              help="Token bucket capacity")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: str, mock: bool, enable_default_prom_reg: bool, use_ratelimit: bool,
        rate_limit_interval: float, rate_limit_size: int, verbose: bool):
    """tc-exporter - Prometheus metrics for Linux traffic control."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
    ctx.ensure_object(dict)
    ctx.obj["mock"] = mock
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        serve(config_path, mock, enable_default_prom_reg, use_ratelimit,
              rate_limit_interval, rate_limit_size, verbose)


def serve(config_path: str, mock: bool, enable_default_prom_reg: bool, use_ratelimit: bool,
          rate_limit_interval: float, rate_limit_size: int, verbose: bool) -> None:
    manager = ConfigManager(config_path)
    try:
        manager.load_config()
    except ConfigError as e:
        log.warning("Falling back to default config: %s", e)
    config = manager.get_config()
    _apply_logging(config, verbose)

    source, source_name = _make_source(mock)
    registry = build_registry(source)
    limiter = RateLimiter(rate_limit_interval, rate_limit_size) if use_ratelimit else None
    server = ExporterServer(registry, manager, rate_limiter=limiter,
                            enable_default_prom_reg=enable_default_prom_reg)

    def on_reload(new_config: Config) -> None:
        setup_logging(new_config.log, verbose=verbose)
        server.on_config_reload(new_config)

    manager.set_reload_callback(on_reload)
    try:
        manager.start_watching()
    except ConfigError as e:
        log.warning("Config hot reload disabled: %s", e)

    try:
        server.bind()
    except OSError as e:
        server.stop()
        raise click.ClickException(f"cannot listen on {config.bind_address()}: {e}")

    def _shutdown(signum, frame):
        log.info("Received signal %d, shutting down", signum)
        # shutdown() blocks until serve_forever returns, so not from this thread
        threading.Thread(target=server.stop, daemon=True).start()

    signal.signal(signal.SIGTERM, _shutdown)
    log.info("tc-exporter %s serving %s data", __version__, source_name)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()


@cli.command()
@click.pass_context
def dump(ctx):
    """Run one collection pass and print it."""
    from rich.console import Console
    from tcexporter.dashboard.terminal import build_display, collect_once

    source, source_name = _make_source(ctx.obj["mock"])
    registry = build_registry(source)
    sink, result = collect_once(registry)

    console = Console()
    console.print(build_display(sink, result, source_name))
    if result.failed:
        raise SystemExit(1)


@cli.command()
@click.option("--refresh", default=2.0, help="Refresh interval in seconds")
@click.option("--output", type=click.Choice(["tui", "jsonl"]), default="tui",
              help="Output mode: tui (Rich view) or jsonl (one JSON line per sample)")
@click.option("--iterations", type=int, default=None, hidden=True)
@click.pass_context
def top(ctx, refresh: float, output: str, iterations):
    """Continuously collect and display tc statistics."""
    from tcexporter.dashboard.terminal import run_dashboard, run_jsonl

    source, source_name = _make_source(ctx.obj["mock"])
    registry = build_registry(source)

    if output == "jsonl":
        run_jsonl(registry, source_name, refresh_interval=refresh, iterations=iterations)
    else:
        run_dashboard(registry, source_name, refresh_interval=refresh)


@cli.command()
@click.option("--url", default="http://127.0.0.1:9062", show_default=True,
              help="Base URL of a running exporter")
@click.option("--metrics-path", default="/metrics", show_default=True)
@click.option("--timeout", default=5.0, help="Request timeout in seconds")
def probe(url: str, metrics_path: str, timeout: float):
    """Check a running exporter's health and summarize its metrics."""
    import httpx
    from prometheus_client.parser import text_string_to_metric_families
    from rich.console import Console
    from rich.table import Table

    console = Console()
    base = url.rstrip("/")

    try:
        with httpx.Client(timeout=timeout) as client:
            health = client.get(f"{base}/health")
            metrics = client.get(f"{base}{metrics_path}")
    except httpx.HTTPError as e:
        console.print(f"[bold red]Cannot reach {base}: {e}[/bold red]")
        raise SystemExit(1)

    payload = health.json()
    color = "green" if health.status_code == 200 else "red"
    console.print(f"\n[bold]Health:[/bold] [{color}]{payload.get('status')}[/{color}]  "
                  f"version {payload.get('version')}, up {payload.get('uptime')}")
    for name, problem in payload.get("details", {}).items():
        console.print(f"  [red]{name}[/red]: {problem}")

    if metrics.status_code != 200:
        console.print(f"[bold yellow]Metrics endpoint returned {metrics.status_code}[/bold yellow]")
        raise SystemExit(1)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric family")
    table.add_column("Samples", justify="right")
    for family in text_string_to_metric_families(metrics.text):
        table.add_row(family.name, str(len(family.samples)))
    console.print(table)
    console.print()

    if health.status_code != 200:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
