"""Possible cause models attached to anomalies."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class CauseType(str, Enum):
    """Categories of possible causes."""

    DEPENDENCY_DEGRADATION = "dependency_degradation"
    RECENT_DEPLOY = "recent_deploy"
    SLOW_QUERIES = "slow_queries"
    TRAFFIC_CHANGE = "traffic_change"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    EXTERNAL_SERVICE = "external_service"
    CONFIGURATION_CHANGE = "configuration_change"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _CAUSE_DISPLAY_NAMES[self]


_CAUSE_DISPLAY_NAMES = {
    CauseType.DEPENDENCY_DEGRADATION: "Dependency Degradation",
    CauseType.RECENT_DEPLOY: "Recent Deploy",
    CauseType.SLOW_QUERIES: "Slow Database Queries",
    CauseType.TRAFFIC_CHANGE: "Traffic Change",
    CauseType.RESOURCE_EXHAUSTION: "Resource Exhaustion",
    CauseType.EXTERNAL_SERVICE: "External Service Issue",
    CauseType.CONFIGURATION_CHANGE: "Configuration Change",
    CauseType.UNKNOWN: "Unknown",
}


class Confidence(str, Enum):
    """Confidence level for a suggested cause."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PossibleCause:
    """A plausible explanation for an anomaly.

    Attached when the anomaly is created and never modified afterwards.
    """

    description: str
    cause_type: CauseType = CauseType.UNKNOWN
    confidence: Confidence = Confidence.LOW
    details: str | None = None

    def __post_init__(self) -> None:
        """Validate cause constraints."""
        if not self.description:
            raise ValueError("Cause description is required")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "description": self.description,
            "cause_type": self.cause_type.value,
            "confidence": self.confidence.value,
            "details": self.details,
        }
