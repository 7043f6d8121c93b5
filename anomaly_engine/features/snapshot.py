"""Metric snapshot builder.

Reduces a window of traces to aggregate request/latency/error statistics,
globally and per normalized endpoint. Everything here is pure and
deterministic: identical inputs produce identical snapshots.
"""

import math
import re
from collections import defaultdict
from datetime import timedelta
from typing import Sequence

from anomaly_engine.models.snapshot import EndpointMetrics, MetricSnapshot
from anomaly_engine.models.trace import Trace

_UUID_SEGMENT = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of pre-sorted values.

    ``index = ceil(p / 100 * n) - 1``, clamped into ``[0, n - 1]``. No
    interpolation: the result is always one of the input values.

    Args:
        sorted_values: Values sorted ascending
        p: Percentile to compute (0-100)

    Returns:
        The selected value, or 0.0 for an empty sequence
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = math.ceil(p * n / 100.0) - 1
    index = max(0, min(index, n - 1))
    return float(sorted_values[index])


def normalize_endpoint(url: str | None) -> str:
    """Collapse a request URL into its route template.

    Query string and fragment are dropped, purely numeric path segments
    become ``{id}`` and UUID-shaped segments become ``{uuid}``::

        /api/orders/12345?x=1  -> /api/orders/{id}
        /api/users/123e4567-e89b-12d3-a456-426614174000 -> /api/users/{uuid}
    """
    if not url:
        return "/"

    path = url.split("?", 1)[0].split("#", 1)[0]
    if not path:
        return "/"

    segments = []
    for segment in path.split("/"):
        if segment.isdigit():
            segments.append("{id}")
        elif _UUID_SEGMENT.match(segment):
            segments.append("{uuid}")
        else:
            segments.append(segment)
    return "/".join(segments) or "/"


def endpoint_key(method: str, url: str | None) -> str:
    """Grouping key for a request: ``METHOD /normalized/path``."""
    return f"{method.upper()} {normalize_endpoint(url)}"


def error_rate(traces: Sequence[Trace]) -> float:
    """Percentage of traces flagged as errors (0.0 when empty)."""
    if not traces:
        return 0.0
    errors = sum(1 for t in traces if t.has_error)
    return errors / len(traces) * 100


def p99_latency(traces: Sequence[Trace]) -> float:
    """Nearest-rank p99 of trace durations."""
    return percentile(sorted(t.duration_ms for t in traces), 99)


class MetricSnapshotBuilder:
    """Builds ``MetricSnapshot`` instances from traces.

    Traces without an HTTP method or URL count towards the global figures
    but are left out of the per-endpoint map.
    """

    def build(
        self,
        traces: Sequence[Trace],
        window: timedelta | None = None,
    ) -> MetricSnapshot:
        """Aggregate a window of traces.

        Args:
            traces: Traces from the analyzed window (any order, possibly empty)
            window: Length of the analyzed window, used for the per-minute
                request rate. Defaults to one minute.

        Returns:
            The snapshot; all-zero with an empty endpoint map for no traces
        """
        window_minutes = self._window_minutes(window)
        if not traces:
            return MetricSnapshot.empty(window_minutes=window_minutes)

        durations = sorted(t.duration_ms for t in traces)
        error_count = sum(1 for t in traces if t.has_error)

        return MetricSnapshot(
            request_count=len(traces),
            avg_latency=sum(durations) / len(durations),
            p99_latency=percentile(durations, 99),
            error_rate=error_count / len(traces) * 100,
            error_count=error_count,
            endpoint_metrics=self._build_endpoint_metrics(traces),
            window_minutes=window_minutes,
        )

    def _build_endpoint_metrics(self, traces: Sequence[Trace]) -> dict[str, EndpointMetrics]:
        by_endpoint: dict[str, list[Trace]] = defaultdict(list)
        for trace in traces:
            if not trace.is_http:
                continue
            by_endpoint[endpoint_key(trace.http_method, trace.http_url)].append(trace)

        metrics = {}
        for key in sorted(by_endpoint):
            endpoint_traces = by_endpoint[key]
            durations = sorted(t.duration_ms for t in endpoint_traces)
            metrics[key] = EndpointMetrics(
                endpoint=key,
                request_count=len(endpoint_traces),
                avg_latency=sum(durations) / len(durations),
                p99_latency=percentile(durations, 99),
                error_rate=error_rate(endpoint_traces),
            )
        return metrics

    @staticmethod
    def _window_minutes(window: timedelta | None) -> float:
        if window is None or window <= timedelta(0):
            return 1.0
        return window.total_seconds() / 60.0
