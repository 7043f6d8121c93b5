"""Cause suggestion module."""

from anomaly_engine.causes.advisor import SLOW_ENDPOINT_THRESHOLD_MS, CauseAdvisor

__all__ = [
    "CauseAdvisor",
    "SLOW_ENDPOINT_THRESHOLD_MS",
]
