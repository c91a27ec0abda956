"""tc-exporter: Prometheus metrics for Linux traffic-control queueing disciplines."""

__version__ = "1.0.0"
