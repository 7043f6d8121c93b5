"""Baseline models for statistical computations."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class BaselineStats:
    """Historical statistics for one metric.

    The sample population is one value per one-minute bucket of historical
    traces, not one value per request.

    ``z_score`` and ``percentage_change`` return None when the baseline
    cannot evaluate a value (zero standard deviation or zero mean). Callers
    treat None as "suppress the rule".
    """

    metric: str
    mean: float
    std_dev: float  # Population standard deviation
    min_value: float
    max_value: float
    sample_count: int
    calculated_at: datetime

    def __post_init__(self) -> None:
        """Validate baseline constraints."""
        if self.std_dev < 0:
            raise ValueError("Standard deviation cannot be negative")
        if self.sample_count < 0:
            raise ValueError("Sample count cannot be negative")
        if self.min_value > self.max_value:
            raise ValueError("Min value cannot be greater than max value")

    def z_score(self, value: float) -> float | None:
        """Number of standard deviations ``value`` lies from the mean."""
        if self.std_dev == 0:
            return None
        return (value - self.mean) / self.std_dev

    def percentage_change(self, value: float) -> float | None:
        """Relative change of ``value`` against the mean, in percent."""
        if self.mean == 0:
            return None
        return (value - self.mean) / self.mean * 100

    def is_usable(self, min_samples: int) -> bool:
        """Check if enough samples back this baseline for detection."""
        return self.sample_count >= min_samples

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        """Check if the baseline was calculated within ``ttl`` of ``now``."""
        return self.calculated_at > now - ttl

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "metric": self.metric,
            "mean": self.mean,
            "std_dev": self.std_dev,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "sample_count": self.sample_count,
            "calculated_at": self.calculated_at.isoformat(),
        }
