"""Baseline computation module."""

from anomaly_engine.baselines.estimator import BaselineEstimator
from anomaly_engine.baselines.statistical import (
    BaselineMetric,
    PopulationStats,
    bucket_by_minute,
    bucket_value,
    compute_baseline,
    population_stats,
)

__all__ = [
    "BaselineEstimator",
    "BaselineMetric",
    "PopulationStats",
    "bucket_by_minute",
    "bucket_value",
    "compute_baseline",
    "population_stats",
]
