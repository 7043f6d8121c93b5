"""Detection engine module."""

from anomaly_engine.engine.orchestrator import DEFAULT_WINDOW, AnomalyDetectionEngine
from anomaly_engine.engine.scheduler import DetectionScheduler

__all__ = [
    "AnomalyDetectionEngine",
    "DEFAULT_WINDOW",
    "DetectionScheduler",
]
