"""Metric snapshot models.

A snapshot is derived fresh from the recent window on every detection run
and is never persisted.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EndpointMetrics:
    """Aggregated request statistics for one normalized endpoint."""

    endpoint: str
    request_count: int
    avg_latency: float
    p99_latency: float
    error_rate: float  # Percent


@dataclass(frozen=True)
class MetricSnapshot:
    """Aggregated request/latency/error statistics for a set of traces."""

    request_count: int
    avg_latency: float
    p99_latency: float
    error_rate: float  # Percent
    error_count: int
    endpoint_metrics: dict[str, EndpointMetrics] = field(default_factory=dict)
    window_minutes: float = 1.0

    @classmethod
    def empty(cls, window_minutes: float = 1.0) -> "MetricSnapshot":
        """Create an all-zero snapshot."""
        return cls(
            request_count=0,
            avg_latency=0.0,
            p99_latency=0.0,
            error_rate=0.0,
            error_count=0,
            endpoint_metrics={},
            window_minutes=window_minutes,
        )

    @property
    def request_rate(self) -> float:
        """Requests per minute over the snapshot window.

        Traffic baselines are built from per-minute buckets, so traffic rules
        compare against this rate rather than the raw window count.
        """
        if self.window_minutes <= 0:
            return float(self.request_count)
        return self.request_count / self.window_minutes
