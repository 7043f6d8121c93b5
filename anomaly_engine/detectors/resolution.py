"""Auto-resolution predicates for active anomalies."""

from anomaly_engine.models.anomaly import Anomaly, AnomalyType
from anomaly_engine.models.snapshot import MetricSnapshot

# Recovery band; an anomaly resolves only once the metric is well back
# inside the baseline, not merely under the firing threshold.
HYSTERESIS_FACTOR = 1.5
ERROR_RATE_RESOLVE_FLOOR = 1.0
TRAFFIC_RESOLVE_TOLERANCE = 0.5


def should_resolve(anomaly: Anomaly, snapshot: MetricSnapshot) -> bool:
    """Check if ``anomaly`` is back to normal according to ``snapshot``.

    Endpoint-scoped anomalies are judged on that endpoint's metrics; an
    endpoint missing from the snapshot carries no evidence either way and
    never resolves. Types without a trace-based predicate never
    auto-resolve.

    Args:
        anomaly: An ACTIVE anomaly
        snapshot: Metrics of the window just analyzed

    Returns:
        True if the anomaly should move to RESOLVED
    """
    if anomaly.is_endpoint_scoped:
        endpoint = snapshot.endpoint_metrics.get(anomaly.endpoint)
        if endpoint is None:
            return False
        latency, errors, traffic = endpoint.p99_latency, endpoint.error_rate, None
    else:
        latency, errors, traffic = (
            snapshot.p99_latency,
            snapshot.error_rate,
            # Per-minute rate, matching the unit of the traffic baseline
            snapshot.request_rate,
        )

    baseline = anomaly.baseline_value
    match anomaly.anomaly_type:
        case AnomalyType.LATENCY_SPIKE:
            return latency < baseline * HYSTERESIS_FACTOR
        case AnomalyType.ERROR_RATE_SPIKE:
            return errors < max(ERROR_RATE_RESOLVE_FLOOR, baseline * HYSTERESIS_FACTOR)
        case AnomalyType.TRAFFIC_SPIKE | AnomalyType.TRAFFIC_DROP:
            if traffic is None or baseline == 0:
                return False
            return abs(traffic - baseline) / baseline < TRAFFIC_RESOLVE_TOLERANCE
        case _:
            return False
