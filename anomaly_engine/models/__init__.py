"""Anomaly engine models module."""

from anomaly_engine.models.anomaly import (
    Anomaly,
    AnomalyStats,
    AnomalyStatus,
    AnomalyType,
    InvalidStatusTransition,
)
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.cause import CauseType, Confidence, PossibleCause
from anomaly_engine.models.snapshot import EndpointMetrics, MetricSnapshot
from anomaly_engine.models.trace import TimeRange, Trace

__all__ = [
    # Anomalies
    "Anomaly",
    "AnomalyStats",
    "AnomalyStatus",
    "AnomalyType",
    "InvalidStatusTransition",
    # Baselines
    "BaselineStats",
    # Causes
    "CauseType",
    "Confidence",
    "PossibleCause",
    # Snapshots
    "EndpointMetrics",
    "MetricSnapshot",
    # Traces
    "TimeRange",
    "Trace",
]
