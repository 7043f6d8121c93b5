"""Detection cycle orchestration."""

import threading
import time
from datetime import datetime, timedelta

import structlog

from anomaly_engine.baselines.estimator import BaselineEstimator, Clock, utc_clock
from anomaly_engine.baselines.statistical import BaselineMetric
from anomaly_engine.causes.advisor import CauseAdvisor
from anomaly_engine.config.settings import DetectionConfig
from anomaly_engine.detectors.deviation_detector import DeviationDetector
from anomaly_engine.detectors.endpoint_detector import EndpointThresholdDetector
from anomaly_engine.detectors.resolution import should_resolve
from anomaly_engine.features.snapshot import MetricSnapshotBuilder
from anomaly_engine.models.anomaly import Anomaly, AnomalyStats, AnomalyStatus, AnomalyType
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.snapshot import MetricSnapshot
from anomaly_engine.models.trace import TimeRange
from anomaly_engine.sources.interface import TraceQueryFailure, TraceSource
from anomaly_engine.store.interface import AnomalyStore
from anomaly_engine.store.memory_store import MemoryAnomalyStore

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW = timedelta(minutes=5)


class AnomalyDetectionEngine:
    """Runs detection cycles and exposes the anomaly registry.

    One cycle:
    1. Query the recent window from the trace source
    2. Build a metric snapshot
    3. Evaluate global baseline rules, then per-endpoint threshold rules
    4. Attach possible causes and insert new anomalies (deduplicated by id)
    5. Auto-resolve anomalies that were ACTIVE before this cycle

    Cycles never overlap: a call made while another cycle runs returns an
    empty list immediately. Reads and status updates may run concurrently
    with a cycle.
    """

    def __init__(
        self,
        source: TraceSource,
        store: AnomalyStore | None = None,
        config: DetectionConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            source: Trace source queried for both windows
            store: Anomaly registry (in-memory by default)
            config: Detection thresholds (defaults when None)
            clock: Callable returning the current UTC time
        """
        self._source = source
        self._store = store if store is not None else MemoryAnomalyStore()
        self._config = config or DetectionConfig()
        self._clock = clock or utc_clock

        self._snapshots = MetricSnapshotBuilder()
        self._baselines = BaselineEstimator(source, self._config, clock=self._clock)
        self._deviation = DeviationDetector(self._config, self._store)
        self._endpoints = EndpointThresholdDetector(self._config, self._store)
        self._advisor = CauseAdvisor()

        self._run_lock = threading.Lock()
        self._last_run_at: datetime | None = None
        self._last_run_duration = timedelta()

    @property
    def config(self) -> DetectionConfig:
        return self._config

    @property
    def store(self) -> AnomalyStore:
        return self._store

    @property
    def baselines(self) -> BaselineEstimator:
        return self._baselines

    def detect(self, window: timedelta = DEFAULT_WINDOW) -> list[Anomaly]:
        """Run one detection cycle over the trailing ``window``.

        Args:
            window: Length of the recent window to analyze

        Returns:
            Anomalies newly created by this cycle, never the full active set
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("Detection run already in progress, skipping")
            return []

        started = time.monotonic()
        run_at = self._clock()
        # Filled as anomalies are inserted so a later failure keeps them
        created: list[Anomaly] = []
        try:
            self._run_cycle(window, run_at, created)
        except Exception:
            logger.exception("Detection run failed", window_seconds=window.total_seconds())
        finally:
            self._last_run_at = run_at
            self._last_run_duration = timedelta(seconds=time.monotonic() - started)
            self._run_lock.release()

        if created:
            logger.info(
                "Detected anomalies",
                count=len(created),
                ids=[a.id for a in created],
            )
        return created

    def _run_cycle(self, window: timedelta, now: datetime, created: list[Anomaly]) -> None:
        result = self._source.query_traces(
            TimeRange(start=now - window, end=now),
            limit=self._config.recent_query_limit,
        )
        if isinstance(result, TraceQueryFailure):
            logger.warning("Recent trace query failed, aborting run", reason=result.reason)
            return

        if not result.traces:
            logger.debug("No traces in recent window")
            return

        snapshot = self._snapshots.build(result.traces, window=window)
        # Captured before inserting so nothing raised this cycle is resolved this cycle
        previously_active = self._store.active()

        candidates: list[Anomaly] = []
        candidates.extend(self._detect_global(snapshot, window, now))
        candidates.extend(self._detect_endpoints(snapshot, now))

        for candidate in candidates:
            enriched = candidate.with_causes(
                self._advisor.suggest(candidate.anomaly_type, snapshot)
            )
            if self._store.insert_if_absent_active(enriched):
                created.append(enriched)

        self._resolve(previously_active, snapshot, now)

    def _detect_global(
        self,
        snapshot: MetricSnapshot,
        window: timedelta,
        now: datetime,
    ) -> list[Anomaly]:
        baselines = {metric: self._baseline_for(metric, window) for metric in BaselineMetric}
        try:
            return self._deviation.detect(snapshot, baselines, now=now)
        except Exception:
            logger.exception("Global detection failed")
            return []

    def _baseline_for(self, metric: BaselineMetric, window: timedelta) -> BaselineStats | None:
        try:
            return self._baselines.get_or_calculate(metric, window)
        except Exception:
            logger.exception("Baseline estimation failed, skipping metric", metric=metric.value)
            return None

    def _detect_endpoints(self, snapshot: MetricSnapshot, now: datetime) -> list[Anomaly]:
        try:
            return self._endpoints.detect(snapshot, now=now)
        except Exception:
            logger.exception("Endpoint detection failed")
            return []

    def _resolve(
        self,
        candidates: list[Anomaly],
        snapshot: MetricSnapshot,
        now: datetime,
    ) -> None:
        for anomaly in candidates:
            if not should_resolve(anomaly, snapshot):
                continue
            # Status may have been changed through the API meanwhile
            if self._store.resolve_if_active(anomaly.id, at=now) is None:
                continue
            logger.info("Anomaly auto-resolved", anomaly_id=anomaly.id)

    def get_anomalies(self, status: AnomalyStatus | None = None) -> list[Anomaly]:
        return self._store.list_anomalies(status)

    def get_anomalies_by_type(self, anomaly_type: AnomalyType) -> list[Anomaly]:
        return self._store.list_by_type(anomaly_type)

    def get_anomaly(self, anomaly_id: str) -> Anomaly | None:
        return self._store.get(anomaly_id)

    def update_status(self, anomaly_id: str, status: AnomalyStatus) -> Anomaly | None:
        """Change an anomaly's status.

        Returns:
            The updated anomaly, or None for an unknown id

        Raises:
            InvalidStatusTransition: If the lifecycle forbids the change
        """
        updated = self._store.update_status(anomaly_id, status, at=self._clock())
        if updated is not None:
            logger.info("Anomaly status updated", anomaly_id=anomaly_id, status=status.value)
        return updated

    def clear_resolved(self) -> int:
        removed = self._store.clear_resolved()
        logger.info("Cleared finished anomalies", removed=removed)
        return removed

    def clear_all(self) -> None:
        self._store.clear_all()
        logger.info("Cleared all anomalies")

    def refresh_baselines(self) -> None:
        """Forget cached baselines; the next run recomputes them."""
        self._baselines.invalidate()
        logger.info("Baseline cache cleared")

    def purge_expired(self) -> int:
        """Drop finished anomalies older than the retention period."""
        cutoff = self._clock() - self._config.retention_period
        removed = self._store.clear_expired(cutoff)
        if removed:
            logger.info("Purged expired anomalies", removed=removed)
        return removed

    def get_stats(self) -> AnomalyStats:
        counts = self._store.counts()
        return AnomalyStats(
            total=counts["total"],
            active=counts["active"],
            critical=counts["critical"],
            warning=counts["warning"],
            resolved=counts["resolved"],
            last_run_at=self._last_run_at,
            last_run_duration=self._last_run_duration,
        )
