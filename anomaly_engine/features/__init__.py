"""Feature extraction from traces."""

from anomaly_engine.features.snapshot import (
    MetricSnapshotBuilder,
    endpoint_key,
    error_rate,
    normalize_endpoint,
    p99_latency,
    percentile,
)

__all__ = [
    "MetricSnapshotBuilder",
    "endpoint_key",
    "error_rate",
    "normalize_endpoint",
    "p99_latency",
    "percentile",
]
