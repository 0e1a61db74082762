"""
Prometheus metrics for the janitor.

Organized into: scan, cleanup, operational.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class JanitorMetrics:
    """Counters and histograms for scan and cleanup passes."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()

        # === Scan Metrics ===
        self.pools_scanned = Counter(
            'pools_scanned_total',
            'Pool passes completed',
            labelnames=['pool'],
            registry=reg
        )
        self.scan_errors = Counter(
            'scan_errors_total',
            'Pools that could not be scanned',
            labelnames=['pool', 'kind'],
            registry=reg
        )
        self.orders_seen = Counter(
            'orders_seen_total',
            'Orders decoded from the book',
            labelnames=['pool', 'side'],
            registry=reg
        )
        self.orders_expired = Counter(
            'orders_expired_total',
            'Expired orders found',
            labelnames=['pool', 'side'],
            registry=reg
        )
        self.scan_latency_ms = Histogram(
            'scan_latency_ms',
            'Time to resolve and scan one pool (milliseconds)',
            labelnames=['pool'],
            buckets=[100, 250, 500, 1000, 2500, 5000, 10000, 30000],
            registry=reg
        )

        # === Cleanup Metrics ===
        self.batches_submitted = Counter(
            'batches_submitted_total',
            'Cleanup batches executed successfully',
            labelnames=['pool'],
            registry=reg
        )
        self.batches_failed = Counter(
            'batches_failed_total',
            'Cleanup batches that failed',
            labelnames=['pool'],
            registry=reg
        )
        self.pools_skipped_unprofitable = Counter(
            'pools_skipped_unprofitable_total',
            'Pools skipped by the profitability gate',
            labelnames=['pool'],
            registry=reg
        )
        self.rebate_claimed_mist = Counter(
            'rebate_claimed_mist_total',
            'Storage rebate returned by successful batches (MIST)',
            labelnames=['pool'],
            registry=reg
        )
        self.net_profit_mist = Gauge(
            'net_profit_mist',
            'Net profit of the last pass (MIST)',
            labelnames=['pool'],
            registry=reg
        )

        # === Operational Metrics ===
        self.passes = Counter(
            'janitor_passes_total',
            'Full passes over the pool registry',
            registry=reg
        )
        self.last_pass_timestamp = Gauge(
            'janitor_last_pass_timestamp_seconds',
            'Unix time the last pass finished',
            registry=reg
        )

        self.registry = reg

    def get_registry(self):
        """Return the Prometheus registry for export."""
        return self.registry


def start_metrics_server(metrics: JanitorMetrics, port: int) -> bool:
    """Expose `metrics` over HTTP on `port`. Port 0 disables the endpoint."""
    if port <= 0:
        return False
    start_http_server(port, registry=metrics.get_registry())
    return True
