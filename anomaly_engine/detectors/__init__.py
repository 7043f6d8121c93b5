"""Anomaly detectors module."""

from anomaly_engine.detectors.deviation_detector import DeviationDetector
from anomaly_engine.detectors.endpoint_detector import (
    ENDPOINT_ERROR_RATE_METRIC,
    ENDPOINT_LATENCY_METRIC,
    EndpointThresholdDetector,
)
from anomaly_engine.detectors.interface import (
    GLOBAL_SCOPE,
    AnomalyDetector,
    Baselines,
    anomaly_id,
)
from anomaly_engine.detectors.resolution import should_resolve

__all__ = [
    "AnomalyDetector",
    "Baselines",
    "DeviationDetector",
    "ENDPOINT_ERROR_RATE_METRIC",
    "ENDPOINT_LATENCY_METRIC",
    "EndpointThresholdDetector",
    "GLOBAL_SCOPE",
    "anomaly_id",
    "should_resolve",
]
