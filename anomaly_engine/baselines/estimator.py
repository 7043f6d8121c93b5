"""Cached historical baseline estimator."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from anomaly_engine.baselines.statistical import BaselineMetric, compute_baseline
from anomaly_engine.config.settings import DetectionConfig
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.trace import TimeRange
from anomaly_engine.sources.interface import TraceQueryFailure, TraceSource

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class BaselineEstimator:
    """Computes and caches per-metric baselines from historical traces.

    Algorithm:
    1. Return the cached baseline if it is younger than the cache TTL
       (5 minutes by default). Baselines are deliberately stale-tolerant.
    2. Query ``[now - baseline_window, now - recent_window)`` so the window
       being analyzed never contaminates its own baseline.
    3. Fewer traces than ``min_samples_for_baseline`` -> None (skip the
       metric this cycle; None is never read as zero).
    4. Bucket by minute, reduce each bucket to one sample value.
    5. Population mean/std-dev over the bucket values; cache the result.

    Reads may happen from API threads while a detection run writes; the
    cache is a dict whose entries are replaced whole under a lock.
    """

    def __init__(
        self,
        source: TraceSource,
        config: DetectionConfig,
        clock: Clock = utc_clock,
    ) -> None:
        self._source = source
        self._config = config
        self._clock = clock
        self._cache: dict[str, BaselineStats] = {}
        self._lock = threading.Lock()

    def get_cached(self, metric: BaselineMetric) -> BaselineStats | None:
        """Return the cached baseline for ``metric`` regardless of age."""
        with self._lock:
            return self._cache.get(metric.value)

    def invalidate(self) -> None:
        """Drop every cached baseline."""
        with self._lock:
            self._cache.clear()

    def get_or_calculate(
        self,
        metric: BaselineMetric,
        recent_window: timedelta,
    ) -> BaselineStats | None:
        """Get a fresh-enough baseline for ``metric``, computing it if needed.

        Args:
            metric: Metric to build the baseline for
            recent_window: Length of the window under analysis, excluded
                from the historical query

        Returns:
            The baseline, or None when there is not enough history or the
            trace source failed
        """
        now = self._clock()

        cached = self.get_cached(metric)
        if cached is not None and cached.is_fresh(now, self._config.baseline_cache_ttl):
            return cached

        start = now - self._config.baseline_window
        end = now - recent_window
        if start >= end:
            logger.debug(
                "Baseline window does not extend past the recent window",
                metric=metric.value,
            )
            return None

        result = self._source.query_traces(
            TimeRange(start=start, end=end),
            limit=self._config.baseline_query_limit,
        )
        if isinstance(result, TraceQueryFailure):
            logger.warning(
                "Baseline query failed, skipping metric",
                metric=metric.value,
                reason=result.reason,
            )
            return None

        traces = result.traces
        if len(traces) < self._config.min_samples_for_baseline:
            logger.debug(
                "Not enough samples for baseline calculation",
                metric=metric.value,
                samples=len(traces),
                required=self._config.min_samples_for_baseline,
            )
            return None

        baseline = compute_baseline(metric, traces, calculated_at=now)
        if baseline is None:
            return None

        with self._lock:
            self._cache[metric.value] = baseline

        logger.debug(
            "Baseline calculated",
            metric=metric.value,
            mean=baseline.mean,
            std_dev=baseline.std_dev,
            buckets=baseline.sample_count,
        )
        return baseline
