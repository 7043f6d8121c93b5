"""Tests for the detection engine and its cycle ordering."""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from anomaly_engine.baselines import BaselineMetric
from anomaly_engine.config import DetectionConfig
from anomaly_engine.detectors import anomaly_id
from anomaly_engine.engine import AnomalyDetectionEngine
from anomaly_engine.models import Anomaly, AnomalyStatus, AnomalyType
from anomaly_engine.sources import InMemoryTraceSource, TraceQueryFailure, TraceQuerySuccess
from anomaly_engine.store import MemoryAnomalyStore

from conftest import NOW

WINDOW = timedelta(minutes=5)


def recent_traces(make_trace, duration_ms: float, count: int = 100, **kwargs) -> list:
    """Traces evenly spread over the 5 minutes before NOW."""
    start = NOW - WINDOW
    return [
        make_trace(start_time=start + timedelta(seconds=i * 3), duration_ms=duration_ms, **kwargs)
        for i in range(count)
    ]


def existing_latency_spike(baseline_value: float = 100.0) -> Anomaly:
    """An anomaly raised by an earlier cycle."""
    return Anomaly(
        id=anomaly_id(AnomalyType.LATENCY_SPIKE),
        anomaly_type=AnomalyType.LATENCY_SPIKE,
        baseline_value=baseline_value,
        current_value=baseline_value * 5,
        metric="latency_p99",
        detected_at=NOW - timedelta(minutes=10),
    )


class TestDetectionCycle:
    """End-to-end detection cycles over an in-memory trace source."""

    @pytest.fixture
    def engine(self, latency_spike_source, detection_config, clock) -> AnomalyDetectionEngine:
        return AnomalyDetectionEngine(latency_spike_source, config=detection_config, clock=clock)

    def test_detects_latency_spike(self, engine: AnomalyDetectionEngine) -> None:
        """Test that a 600ms window over a 50ms history raises one latency spike."""
        anomalies = engine.detect(WINDOW)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.anomaly_type == AnomalyType.LATENCY_SPIKE
        assert anomaly.status == AnomalyStatus.ACTIVE
        assert anomaly.endpoint is None
        assert anomaly.baseline_value == pytest.approx(50.0)
        assert anomaly.current_value == 600.0
        assert anomaly.percentage_change == pytest.approx(1100.0)
        assert anomaly.detected_at == NOW
        assert [c.description for c in anomaly.possible_causes] == [
            "Check database query performance"
        ]
        assert engine.get_anomaly(anomaly.id) == anomaly

    def test_dedup_is_idempotent(self, engine: AnomalyDetectionEngine) -> None:
        """Test that re-running on the same anomalous data adds nothing."""
        first = engine.detect(WINDOW)
        second = engine.detect(WINDOW)

        assert len(first) == 1
        assert second == []
        active = engine.get_anomalies(AnomalyStatus.ACTIVE)
        assert [a.id for a in active] == [first[0].id]

    def test_stats_after_run(self, engine: AnomalyDetectionEngine) -> None:
        """Test that stats reflect the stored anomaly and the run."""
        engine.detect(WINDOW)

        stats = engine.get_stats()

        assert stats.total == 1
        assert stats.active == 1
        assert stats.critical == 1
        assert stats.warning == 0
        assert stats.last_run_at == NOW
        assert stats.last_run_duration >= timedelta(0)

    def test_lookup_by_type(self, engine: AnomalyDetectionEngine) -> None:
        """Test type filtering through the engine."""
        engine.detect(WINDOW)

        assert len(engine.get_anomalies_by_type(AnomalyType.LATENCY_SPIKE)) == 1
        assert engine.get_anomalies_by_type(AnomalyType.TRAFFIC_DROP) == []

    def test_status_updates(self, engine: AnomalyDetectionEngine, clock) -> None:
        """Test lifecycle changes through the engine."""
        anomaly = engine.detect(WINDOW)[0]
        clock.advance(timedelta(minutes=2))

        engine.update_status(anomaly.id, AnomalyStatus.ACKNOWLEDGED)
        resolved = engine.update_status(anomaly.id, AnomalyStatus.RESOLVED)

        assert resolved.status == AnomalyStatus.RESOLVED
        assert resolved.resolved_at == NOW + timedelta(minutes=2)
        assert engine.update_status("missing", AnomalyStatus.RESOLVED) is None

    def test_clear_operations(self, engine: AnomalyDetectionEngine) -> None:
        """Test clearing finished and all anomalies."""
        anomaly = engine.detect(WINDOW)[0]

        assert engine.clear_resolved() == 0
        engine.update_status(anomaly.id, AnomalyStatus.IGNORED)
        assert engine.clear_resolved() == 1
        assert engine.get_anomalies() == []

        engine.detect(WINDOW)
        engine.clear_all()
        assert engine.get_stats().total == 0


class TestEndpointDetection:
    """Tests for per-endpoint rules inside a cycle."""

    def test_slow_endpoint_without_history(self, make_trace, clock) -> None:
        """Test that endpoint thresholds fire even without any baseline."""
        traces = recent_traces(make_trace, 6000.0, count=20, http_url="/api/reports/7")
        engine = AnomalyDetectionEngine(InMemoryTraceSource(traces), clock=clock)

        anomalies = engine.detect(WINDOW)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.endpoint == "GET /api/reports/{id}"
        assert anomaly.anomaly_type == AnomalyType.LATENCY_SPIKE
        assert anomaly.possible_causes[0].description == (
            "Slow endpoint: GET /api/reports/{id} (6000ms)"
        )


class TestAutoResolution:
    """Tests for hysteresis-based auto-resolution."""

    @pytest.fixture
    def store(self) -> MemoryAnomalyStore:
        store = MemoryAnomalyStore()
        store.insert_if_absent_active(existing_latency_spike(baseline_value=100.0))
        return store

    def test_stays_active_above_band(self, store, make_trace, clock) -> None:
        """Test that 200ms against a 100ms baseline stays active."""
        source = InMemoryTraceSource(recent_traces(make_trace, 200.0))
        engine = AnomalyDetectionEngine(source, store=store, clock=clock)

        engine.detect(WINDOW)

        assert engine.get_anomaly(anomaly_id(AnomalyType.LATENCY_SPIKE)).is_active

    def test_resolves_inside_band(self, store, make_trace, clock) -> None:
        """Test that 140ms against a 100ms baseline resolves."""
        source = InMemoryTraceSource(recent_traces(make_trace, 140.0))
        engine = AnomalyDetectionEngine(source, store=store, clock=clock)

        engine.detect(WINDOW)

        anomaly = engine.get_anomaly(anomaly_id(AnomalyType.LATENCY_SPIKE))
        assert anomaly.status == AnomalyStatus.RESOLVED
        assert anomaly.resolved_at == NOW

    def test_acknowledged_not_auto_resolved(self, store, make_trace, clock) -> None:
        """Test that only ACTIVE anomalies are auto-resolved."""
        store.update_status(anomaly_id(AnomalyType.LATENCY_SPIKE), AnomalyStatus.ACKNOWLEDGED)
        source = InMemoryTraceSource(recent_traces(make_trace, 10.0))
        engine = AnomalyDetectionEngine(source, store=store, clock=clock)

        engine.detect(WINDOW)

        anomaly = engine.get_anomaly(anomaly_id(AnomalyType.LATENCY_SPIKE))
        assert anomaly.status == AnomalyStatus.ACKNOWLEDGED

    def test_new_anomaly_not_resolved_same_cycle(
        self, make_trace, detection_config, clock
    ) -> None:
        """Test that an anomaly raised this cycle is never resolved this cycle."""
        # History alternates 9 and 11 requests per minute: mean 10, std-dev 1
        start = NOW - timedelta(minutes=65)
        history = [
            make_trace(start_time=start + timedelta(minutes=m, seconds=i * 5))
            for m in range(60)
            for i in range(9 if m % 2 == 0 else 11)
        ]
        # 14 requests per minute: z = 4 fires a spike, yet within 50% of the baseline
        window = [
            make_trace(start_time=NOW - WINDOW + timedelta(seconds=i * 4)) for i in range(70)
        ]
        engine = AnomalyDetectionEngine(
            InMemoryTraceSource(history + window), config=detection_config, clock=clock
        )

        created = engine.detect(WINDOW)

        assert [a.anomaly_type for a in created] == [AnomalyType.TRAFFIC_SPIKE]
        assert engine.get_anomaly(created[0].id).is_active

        # The next cycle sees it as pre-existing and resolves it
        engine.detect(WINDOW)
        assert engine.get_anomaly(created[0].id).status == AnomalyStatus.RESOLVED


class TestGuards:
    """Tests for insufficient data and degenerate statistics."""

    def test_insufficient_baseline(self, make_trace, detection_config, clock) -> None:
        """Test that one sample short of the minimum produces no global anomaly."""
        history = [
            make_trace(start_time=NOW - timedelta(hours=1, minutes=i), duration_ms=50.0)
            for i in range(detection_config.min_samples_for_baseline - 1)
        ]
        source = InMemoryTraceSource(history + recent_traces(make_trace, 4000.0))
        engine = AnomalyDetectionEngine(source, config=detection_config, clock=clock)

        assert engine.detect(WINDOW) == []
        assert engine.baselines.get_cached(BaselineMetric.LATENCY_P99) is None

    def test_flat_history_never_fires(self, make_trace, detection_config, clock) -> None:
        """Test that a zero-spread history cannot raise an anomaly."""
        history = [
            make_trace(start_time=NOW - timedelta(minutes=60 - m), duration_ms=50.0)
            for m in range(50)
            for _ in range(3)
        ]
        source = InMemoryTraceSource(history + recent_traces(make_trace, 4000.0))
        engine = AnomalyDetectionEngine(source, config=detection_config, clock=clock)

        assert engine.detect(WINDOW) == []

    def test_empty_window(self, detection_config, clock) -> None:
        """Test that an empty recent window is a normal, empty run."""
        engine = AnomalyDetectionEngine(InMemoryTraceSource(), config=detection_config, clock=clock)

        assert engine.detect(WINDOW) == []
        assert engine.get_stats().last_run_at == NOW


class TestFailures:
    """Tests for collaborator failures and overlapping runs."""

    def test_source_failure_aborts_cycle(self, clock) -> None:
        """Test that a failed query is logged and the run still recorded."""
        source = Mock()
        source.query_traces.return_value = TraceQueryFailure(reason="trace store down")
        engine = AnomalyDetectionEngine(source, clock=clock)

        assert engine.detect(WINDOW) == []
        assert engine.get_stats().last_run_at == NOW

    def test_unexpected_exception_contained(self, clock) -> None:
        """Test that an exception inside a cycle does not escape."""
        source = Mock()
        source.query_traces.side_effect = RuntimeError("boom")
        engine = AnomalyDetectionEngine(source, clock=clock)

        assert engine.detect(WINDOW) == []
        assert engine.get_stats().last_run_at == NOW

        # The run lock was released
        source.query_traces.side_effect = None
        source.query_traces.return_value = TraceQuerySuccess(traces=[])
        assert engine.detect(WINDOW) == []
        assert source.query_traces.call_count == 2

    def test_overlapping_run_skipped(self, clock) -> None:
        """Test that a run requested during another run returns immediately."""
        entered = threading.Event()
        release = threading.Event()

        def slow_query(time_range, limit):
            entered.set()
            release.wait(5)
            return TraceQuerySuccess(traces=[])

        source = Mock()
        source.query_traces.side_effect = slow_query
        engine = AnomalyDetectionEngine(source, clock=clock)

        worker = threading.Thread(target=engine.detect, args=(WINDOW,))
        worker.start()
        assert entered.wait(5)

        assert engine.detect(WINDOW) == []
        assert source.query_traces.call_count == 1

        release.set()
        worker.join(5)
        assert not worker.is_alive()

    def test_baseline_error_keeps_endpoint_results(self, make_trace, clock) -> None:
        """Test that a failing historical query only drops the global rules."""

        class HistoryErrorSource(InMemoryTraceSource):
            def query_traces(self, time_range, limit):
                if time_range.end < NOW:
                    raise RuntimeError("history unavailable")
                return super().query_traces(time_range, limit)

        traces = recent_traces(make_trace, 6000.0, count=20, http_url="/api/reports/7")
        engine = AnomalyDetectionEngine(HistoryErrorSource(traces), clock=clock)

        anomalies = engine.detect(WINDOW)

        assert len(anomalies) == 1
        assert anomalies[0].anomaly_type == AnomalyType.LATENCY_SPIKE
        assert anomalies[0].endpoint == "GET /api/reports/{id}"

    def test_status_change_during_resolution(self, make_trace, clock) -> None:
        """Test that an anomaly ignored mid-cycle is skipped, not an error."""

        class IgnoringStore(MemoryAnomalyStore):
            def resolve_if_active(self, anomaly_id, at):
                # An operator ignores the anomaly just before resolution
                self.update_status(anomaly_id, AnomalyStatus.IGNORED)
                return super().resolve_if_active(anomaly_id, at)

        store = IgnoringStore()
        existing = existing_latency_spike(baseline_value=100.0)
        store.insert_if_absent_active(existing)
        # Fast enough to resolve the latency spike, failing enough for an endpoint error spike
        traces = recent_traces(make_trace, 10.0, count=20, has_error=True, http_url="/api/pay")
        engine = AnomalyDetectionEngine(InMemoryTraceSource(traces), store=store, clock=clock)

        created = engine.detect(WINDOW)

        assert [(a.anomaly_type, a.endpoint) for a in created] == [
            (AnomalyType.ERROR_RATE_SPIKE, "GET /api/pay")
        ]
        assert engine.get_anomaly(existing.id).status == AnomalyStatus.IGNORED

    def test_late_failure_keeps_inserted_anomalies(self, make_trace, clock) -> None:
        """Test that a failure after inserts still returns what was created."""

        class BrokenResolveStore(MemoryAnomalyStore):
            def resolve_if_active(self, anomaly_id, at):
                raise RuntimeError("store unavailable")

        store = BrokenResolveStore()
        store.insert_if_absent_active(existing_latency_spike(baseline_value=100.0))
        traces = recent_traces(make_trace, 10.0, count=20, has_error=True, http_url="/api/pay")
        engine = AnomalyDetectionEngine(InMemoryTraceSource(traces), store=store, clock=clock)

        created = engine.detect(WINDOW)

        assert [a.anomaly_type for a in created] == [AnomalyType.ERROR_RATE_SPIKE]
        assert engine.get_anomaly(created[0].id).is_active
        assert engine.get_stats().last_run_at == NOW

    def test_refresh_baselines(self, latency_spike_source, detection_config, clock) -> None:
        """Test that cached baselines are dropped on request."""
        engine = AnomalyDetectionEngine(latency_spike_source, config=detection_config, clock=clock)
        engine.detect(WINDOW)
        assert engine.baselines.get_cached(BaselineMetric.LATENCY_P99) is not None

        engine.refresh_baselines()

        assert engine.baselines.get_cached(BaselineMetric.LATENCY_P99) is None


class TestRetention:
    """Tests for the retention purge."""

    def test_purge_expired(self, clock) -> None:
        """Test that finished anomalies older than retention are dropped."""
        store = MemoryAnomalyStore()
        old = existing_latency_spike()
        store.insert_if_absent_active(old)
        store.update_status(old.id, AnomalyStatus.RESOLVED, at=NOW - timedelta(days=8))
        engine = AnomalyDetectionEngine(
            InMemoryTraceSource(),
            store=store,
            config=DetectionConfig(retention_period=timedelta(days=7)),
            clock=clock,
        )

        assert engine.purge_expired() == 1
        assert engine.get_anomalies() == []
