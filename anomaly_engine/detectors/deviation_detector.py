"""Baseline-relative detection over whole-service metrics."""

from datetime import datetime

import structlog

from anomaly_engine.baselines.statistical import BaselineMetric
from anomaly_engine.detectors.interface import AnomalyDetector, Baselines, anomaly_id
from anomaly_engine.models.anomaly import Anomaly, AnomalyType
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.snapshot import MetricSnapshot

logger = structlog.get_logger(__name__)


class DeviationDetector(AnomalyDetector):
    """Compares the recent snapshot against historical baselines.

    Rules (each metric evaluated independently):
    1. Latency: p99 z-score above threshold AND p99 increase above the
       minimum percent. Both are required so a baseline already near zero
       cannot fire on a tiny absolute change.
    2. Error rate: ignored below the absolute floor, then z-score above
       threshold.
    3. Traffic: requests per minute z-score above threshold is a spike;
       below the negated threshold is a drop when drop alerting is on.

    Baselines missing, under-sampled, or with zero std-dev / zero mean
    suppress the corresponding rule.
    """

    def detect(
        self,
        snapshot: MetricSnapshot,
        baselines: Baselines | None = None,
        now: datetime | None = None,
    ) -> list[Anomaly]:
        baselines = baselines or {}
        detected_at = self._now(now)

        candidates = [
            self._check_latency(snapshot, self._usable(baselines, BaselineMetric.LATENCY_P99), detected_at),
            self._check_error_rate(snapshot, self._usable(baselines, BaselineMetric.ERROR_RATE), detected_at),
            self._check_traffic(snapshot, self._usable(baselines, BaselineMetric.REQUEST_COUNT), detected_at),
        ]

        anomalies = []
        for candidate in candidates:
            if candidate is None:
                continue
            if self._is_tracked(candidate.id):
                logger.debug("Anomaly already tracked", anomaly_id=candidate.id)
                continue
            anomalies.append(candidate)
        return anomalies

    def _usable(self, baselines: Baselines, metric: BaselineMetric) -> BaselineStats | None:
        baseline = baselines.get(metric)
        if baseline is None or not baseline.is_usable(self._config.min_samples_for_baseline):
            return None
        return baseline

    def _check_latency(
        self,
        snapshot: MetricSnapshot,
        baseline: BaselineStats | None,
        detected_at: datetime,
    ) -> Anomaly | None:
        if baseline is None:
            return None

        current = snapshot.p99_latency
        z_score = baseline.z_score(current)
        change = baseline.percentage_change(current)
        if z_score is None or change is None:
            return None

        if (
            z_score > self._config.latency_z_score_threshold
            and change > self._config.latency_min_increase_percent
        ):
            return self._build(
                AnomalyType.LATENCY_SPIKE, baseline, current, z_score, change, detected_at
            )
        return None

    def _check_error_rate(
        self,
        snapshot: MetricSnapshot,
        baseline: BaselineStats | None,
        detected_at: datetime,
    ) -> Anomaly | None:
        if baseline is None:
            return None

        current = snapshot.error_rate
        # Statistically significant but negligible rates are noise
        if current < self._config.error_rate_min_absolute:
            return None

        z_score = baseline.z_score(current)
        if z_score is None or z_score <= self._config.error_rate_z_score_threshold:
            return None

        # Zero mean leaves the relative change undefined
        change = baseline.percentage_change(current)
        return self._build(
            AnomalyType.ERROR_RATE_SPIKE,
            baseline,
            current,
            z_score,
            change if change is not None else 0.0,
            detected_at,
        )

    def _check_traffic(
        self,
        snapshot: MetricSnapshot,
        baseline: BaselineStats | None,
        detected_at: datetime,
    ) -> Anomaly | None:
        if baseline is None:
            return None

        # Requests per minute, not the raw window count: baselines are per-minute bucket sizes
        current = snapshot.request_rate
        z_score = baseline.z_score(current)
        change = baseline.percentage_change(current)
        if z_score is None or change is None:
            return None

        threshold = self._config.traffic_z_score_threshold
        if z_score > threshold:
            anomaly_type = AnomalyType.TRAFFIC_SPIKE
        elif z_score < -threshold and self._config.alert_on_traffic_decrease:
            anomaly_type = AnomalyType.TRAFFIC_DROP
        else:
            return None

        return self._build(anomaly_type, baseline, current, z_score, change, detected_at)

    @staticmethod
    def _build(
        anomaly_type: AnomalyType,
        baseline: BaselineStats,
        current: float,
        z_score: float,
        change: float,
        detected_at: datetime,
    ) -> Anomaly:
        return Anomaly(
            id=anomaly_id(anomaly_type),
            anomaly_type=anomaly_type,
            metric=baseline.metric,
            baseline_value=baseline.mean,
            current_value=current,
            deviation=z_score,
            percentage_change=change,
            detected_at=detected_at,
        )
