"""Statistical helpers for baseline computation."""

import statistics
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Sequence

from anomaly_engine.features.snapshot import error_rate, p99_latency
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.trace import Trace

BUCKET_SECONDS = 60


class BaselineMetric(str, Enum):
    """Metrics for which historical baselines are built."""

    LATENCY_P99 = "latency_p99"
    ERROR_RATE = "error_rate"
    REQUEST_COUNT = "request_count"


@dataclass(frozen=True)
class PopulationStats:
    """Summary statistics of a sample population."""

    mean: float
    std_dev: float
    min_value: float
    max_value: float
    count: int


def population_stats(values: Sequence[float]) -> PopulationStats:
    """Compute mean and population (not sample) standard deviation.

    Raises:
        ValueError: If ``values`` is empty
    """
    if not values:
        raise ValueError("Cannot compute statistics of an empty sequence")
    return PopulationStats(
        mean=statistics.fmean(values),
        std_dev=statistics.pstdev(values),
        min_value=min(values),
        max_value=max(values),
        count=len(values),
    )


def bucket_by_minute(traces: Iterable[Trace]) -> dict[int, list[Trace]]:
    """Group traces into one-minute buckets by truncated start time.

    Keys are minutes since the epoch; only non-empty buckets exist.
    """
    buckets: dict[int, list[Trace]] = defaultdict(list)
    for trace in traces:
        buckets[int(trace.start_time.timestamp() // BUCKET_SECONDS)].append(trace)
    return dict(buckets)


def bucket_value(metric: BaselineMetric, bucket: Sequence[Trace]) -> float:
    """Reduce one bucket to the sample value for ``metric``."""
    if metric == BaselineMetric.LATENCY_P99:
        return p99_latency(bucket)
    if metric == BaselineMetric.ERROR_RATE:
        return error_rate(bucket)
    if metric == BaselineMetric.REQUEST_COUNT:
        return float(len(bucket))
    raise ValueError(f"Unsupported baseline metric: {metric}")


def compute_baseline(
    metric: BaselineMetric,
    traces: Sequence[Trace],
    calculated_at: datetime,
) -> BaselineStats | None:
    """Build baseline statistics over per-minute bucket values.

    Returns:
        The baseline, or None when ``traces`` is empty
    """
    buckets = bucket_by_minute(traces)
    if not buckets:
        return None

    # Bucket order does not affect the statistics; sort for reproducible floats
    values = [bucket_value(metric, buckets[minute]) for minute in sorted(buckets)]
    stats = population_stats(values)
    return BaselineStats(
        metric=metric.value,
        mean=stats.mean,
        std_dev=stats.std_dev,
        min_value=stats.min_value,
        max_value=stats.max_value,
        sample_count=stats.count,
        calculated_at=calculated_at,
    )
