"""Unit tests for baseline computation."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from anomaly_engine.baselines import (
    BaselineEstimator,
    BaselineMetric,
    bucket_by_minute,
    compute_baseline,
    population_stats,
)
from anomaly_engine.config import DetectionConfig
from anomaly_engine.models import BaselineStats
from anomaly_engine.sources import InMemoryTraceSource, TraceQueryFailure

from conftest import NOW


def create_baseline(mean: float = 100.0, std_dev: float = 10.0, samples: int = 100) -> BaselineStats:
    """Create a test baseline."""
    return BaselineStats(
        metric="latency_p99",
        mean=mean,
        std_dev=std_dev,
        min_value=mean - std_dev,
        max_value=mean + std_dev,
        sample_count=samples,
        calculated_at=NOW,
    )


class TestPopulationStats:
    """Tests for population statistics."""

    def test_basic_metrics(self) -> None:
        """Test mean, bounds and count."""
        stats = population_stats([10.0, 20.0, 30.0, 40.0, 50.0])

        assert stats.mean == 30.0
        assert stats.min_value == 10.0
        assert stats.max_value == 50.0
        assert stats.count == 5

    def test_population_std(self) -> None:
        """Test that the population (not sample) std-dev is used."""
        stats = population_stats([1.0, 2.0, 3.0, 4.0, 5.0])

        # Population stdev of 1..5 is sqrt(2)
        assert stats.std_dev == pytest.approx(1.4142135623730951)

    def test_constant_values_have_zero_std(self) -> None:
        """Test that identical values give exactly zero spread."""
        assert population_stats([7.0, 7.0, 7.0]).std_dev == 0.0

    def test_empty_raises(self) -> None:
        """Test that an empty population is rejected."""
        with pytest.raises(ValueError, match="empty"):
            population_stats([])


class TestBaselineStats:
    """Tests for BaselineStats evaluation helpers."""

    def test_z_score(self) -> None:
        """Test z-score computation."""
        assert create_baseline(mean=100.0, std_dev=10.0).z_score(130.0) == 3.0

    def test_z_score_zero_std(self) -> None:
        """Test that zero spread cannot be evaluated."""
        assert create_baseline(std_dev=0.0).z_score(1000.0) is None

    def test_percentage_change(self) -> None:
        """Test relative change against the mean."""
        assert create_baseline(mean=50.0).percentage_change(600.0) == pytest.approx(1100.0)

    def test_percentage_change_zero_mean(self) -> None:
        """Test that a zero mean cannot be evaluated."""
        baseline = BaselineStats(
            metric="error_rate",
            mean=0.0,
            std_dev=0.0,
            min_value=0.0,
            max_value=0.0,
            sample_count=10,
            calculated_at=NOW,
        )
        assert baseline.percentage_change(5.0) is None

    def test_usable_and_fresh(self) -> None:
        """Test sample and age checks."""
        baseline = create_baseline(samples=10)

        assert baseline.is_usable(10)
        assert not baseline.is_usable(11)
        assert baseline.is_fresh(NOW + timedelta(minutes=4), timedelta(minutes=5))
        assert not baseline.is_fresh(NOW + timedelta(minutes=5), timedelta(minutes=5))

    def test_negative_std_rejected(self) -> None:
        """Test validation of the standard deviation."""
        with pytest.raises(ValueError, match="negative"):
            create_baseline(std_dev=-1.0)


class TestComputeBaseline:
    """Tests for per-minute bucket baselines."""

    def test_buckets_by_minute(self, make_trace) -> None:
        """Test that traces group into one-minute buckets."""
        traces = [
            make_trace(start_time=NOW),
            make_trace(start_time=NOW + timedelta(seconds=59)),
            make_trace(start_time=NOW + timedelta(seconds=60)),
        ]

        buckets = bucket_by_minute(traces)

        assert sorted(len(b) for b in buckets.values()) == [1, 2]

    def test_latency_baseline_over_bucket_p99(self, history) -> None:
        """Test that the sample population is one p99 per minute."""
        baseline = compute_baseline(BaselineMetric.LATENCY_P99, history, calculated_at=NOW)

        assert baseline is not None
        assert baseline.metric == "latency_p99"
        assert baseline.sample_count == 100
        assert baseline.mean == pytest.approx(50.0)
        assert baseline.std_dev == pytest.approx(5.0)
        assert baseline.min_value == 45.0
        assert baseline.max_value == 55.0

    def test_request_count_baseline(self, history) -> None:
        """Test that traffic baselines count requests per minute."""
        baseline = compute_baseline(BaselineMetric.REQUEST_COUNT, history, calculated_at=NOW)

        assert baseline is not None
        assert baseline.mean == 10.0
        assert baseline.std_dev == 0.0

    def test_error_rate_baseline(self, make_trace) -> None:
        """Test that error-rate samples are percentages per minute."""
        traces = [make_trace(start_time=NOW, has_error=i < 1) for i in range(4)]
        traces += [make_trace(start_time=NOW + timedelta(minutes=1)) for _ in range(4)]

        baseline = compute_baseline(BaselineMetric.ERROR_RATE, traces, calculated_at=NOW)

        assert baseline is not None
        assert baseline.mean == 12.5
        assert baseline.max_value == 25.0

    def test_no_traces(self) -> None:
        """Test that no traces give no baseline."""
        assert compute_baseline(BaselineMetric.LATENCY_P99, [], calculated_at=NOW) is None


class TestBaselineEstimator:
    """Tests for BaselineEstimator."""

    @pytest.fixture
    def config(self) -> DetectionConfig:
        return DetectionConfig(min_samples_for_baseline=10)

    def test_calculates_from_history(self, history, config, clock) -> None:
        """Test baseline calculation from the historical window."""
        estimator = BaselineEstimator(InMemoryTraceSource(history), config, clock=clock)

        baseline = estimator.get_or_calculate(BaselineMetric.LATENCY_P99, timedelta(minutes=5))

        assert baseline is not None
        assert baseline.mean == pytest.approx(50.0)
        assert baseline.calculated_at == NOW

    def test_excludes_recent_window(self, history, slow_window, config, clock) -> None:
        """Test that the analyzed window never feeds its own baseline."""
        estimator = BaselineEstimator(
            InMemoryTraceSource(history + slow_window), config, clock=clock
        )

        baseline = estimator.get_or_calculate(BaselineMetric.LATENCY_P99, timedelta(minutes=5))

        assert baseline is not None
        assert baseline.max_value == 55.0

    def test_insufficient_samples(self, make_trace, config, clock) -> None:
        """Test that one trace below the minimum yields no baseline."""
        traces = [
            make_trace(start_time=NOW - timedelta(hours=1, minutes=i), duration_ms=50.0)
            for i in range(config.min_samples_for_baseline - 1)
        ]
        estimator = BaselineEstimator(InMemoryTraceSource(traces), config, clock=clock)

        assert estimator.get_or_calculate(BaselineMetric.LATENCY_P99, timedelta(minutes=5)) is None

    def test_source_failure(self, config, clock) -> None:
        """Test that a failing source yields no baseline."""
        source = Mock()
        source.query_traces.return_value = TraceQueryFailure(reason="unavailable")
        estimator = BaselineEstimator(source, config, clock=clock)

        assert estimator.get_or_calculate(BaselineMetric.ERROR_RATE, timedelta(minutes=5)) is None

    def test_cached_within_ttl(self, history, config, clock) -> None:
        """Test that a fresh baseline is served from cache."""
        source = Mock(wraps=InMemoryTraceSource(history))
        estimator = BaselineEstimator(source, config, clock=clock)
        window = timedelta(minutes=5)

        first = estimator.get_or_calculate(BaselineMetric.LATENCY_P99, window)
        clock.advance(timedelta(minutes=4))
        second = estimator.get_or_calculate(BaselineMetric.LATENCY_P99, window)

        assert second is first
        assert source.query_traces.call_count == 1

    def test_recalculated_after_ttl(self, history, config, clock) -> None:
        """Test that a stale baseline is recomputed."""
        source = Mock(wraps=InMemoryTraceSource(history))
        estimator = BaselineEstimator(source, config, clock=clock)
        window = timedelta(minutes=5)

        estimator.get_or_calculate(BaselineMetric.LATENCY_P99, window)
        clock.advance(timedelta(minutes=6))
        refreshed = estimator.get_or_calculate(BaselineMetric.LATENCY_P99, window)

        assert source.query_traces.call_count == 2
        assert refreshed is not None
        assert refreshed.calculated_at == NOW + timedelta(minutes=6)

    def test_invalidate(self, history, config, clock) -> None:
        """Test that invalidation clears cached baselines."""
        estimator = BaselineEstimator(InMemoryTraceSource(history), config, clock=clock)
        estimator.get_or_calculate(BaselineMetric.LATENCY_P99, timedelta(minutes=5))

        estimator.invalidate()

        assert estimator.get_cached(BaselineMetric.LATENCY_P99) is None
