"""Fixed-threshold detection per endpoint."""

from datetime import datetime

from anomaly_engine.detectors.interface import AnomalyDetector, Baselines, anomaly_id
from anomaly_engine.models.anomaly import Anomaly, AnomalyType
from anomaly_engine.models.snapshot import EndpointMetrics, MetricSnapshot

ENDPOINT_LATENCY_METRIC = "endpoint_latency_p99"
ENDPOINT_ERROR_RATE_METRIC = "endpoint_error_rate"


class EndpointThresholdDetector(AnomalyDetector):
    """Flags individual endpoints that cross fixed latency or error thresholds.

    Per-endpoint history is too sparse for reliable baselines at low
    traffic, so these rules use absolute limits instead. Endpoints with
    fewer than ``endpoint_min_requests`` requests in the window are skipped.
    Baselines are ignored.
    """

    def detect(
        self,
        snapshot: MetricSnapshot,
        baselines: Baselines | None = None,
        now: datetime | None = None,
    ) -> list[Anomaly]:
        detected_at = self._now(now)
        anomalies = []

        for key, metrics in snapshot.endpoint_metrics.items():
            if metrics.request_count < self._config.endpoint_min_requests:
                continue

            if metrics.p99_latency > self._config.endpoint_latency_threshold_ms:
                anomalies.append(
                    self._build(
                        AnomalyType.LATENCY_SPIKE,
                        metrics,
                        metric=ENDPOINT_LATENCY_METRIC,
                        expected=self._config.endpoint_expected_latency_ms,
                        current=metrics.p99_latency,
                        detected_at=detected_at,
                    )
                )

            if metrics.error_rate > self._config.endpoint_error_rate_threshold:
                anomalies.append(
                    self._build(
                        AnomalyType.ERROR_RATE_SPIKE,
                        metrics,
                        metric=ENDPOINT_ERROR_RATE_METRIC,
                        expected=self._config.endpoint_expected_error_rate,
                        current=metrics.error_rate,
                        detected_at=detected_at,
                    )
                )

        return [a for a in anomalies if not self._is_tracked(a.id)]

    @staticmethod
    def _build(
        anomaly_type: AnomalyType,
        metrics: EndpointMetrics,
        metric: str,
        expected: float,
        current: float,
        detected_at: datetime,
    ) -> Anomaly:
        change = (current - expected) / expected * 100 if expected else 0.0
        return Anomaly(
            id=anomaly_id(anomaly_type, metrics.endpoint),
            anomaly_type=anomaly_type,
            metric=metric,
            endpoint=metrics.endpoint,
            baseline_value=expected,
            current_value=current,
            percentage_change=change,
            detected_at=detected_at,
        )
