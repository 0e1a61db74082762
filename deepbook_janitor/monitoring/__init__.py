"""
Monitoring package.

Prometheus metrics for scan and cleanup passes.
"""

from deepbook_janitor.monitoring.metrics import JanitorMetrics, start_metrics_server

__all__ = [
    "JanitorMetrics",
    "start_metrics_server",
]
