"""Anomaly models."""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from anomaly_engine.models.cause import PossibleCause


class AnomalyType(str, Enum):
    """Types of anomalies that can be detected.

    - LATENCY_SPIKE / ERROR_RATE_SPIKE: critical, raised by the detector
    - TRAFFIC_SPIKE / TRAFFIC_DROP: warning, raised by the detector
    - SLOW_DEPENDENCY / MEMORY_SPIKE / CPU_SPIKE: warning, reserved for
      producers outside the trace-based rules; never auto-resolved
    """

    LATENCY_SPIKE = "latency_spike"
    ERROR_RATE_SPIKE = "error_rate_spike"
    TRAFFIC_SPIKE = "traffic_spike"
    TRAFFIC_DROP = "traffic_drop"
    SLOW_DEPENDENCY = "slow_dependency"
    MEMORY_SPIKE = "memory_spike"
    CPU_SPIKE = "cpu_spike"

    @property
    def display_name(self) -> str:
        return _TYPE_INFO[self][0]

    @property
    def severity(self) -> str:
        """Either "critical" or "warning"."""
        return _TYPE_INFO[self][1]

    @property
    def description(self) -> str:
        return _TYPE_INFO[self][2]

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"


_TYPE_INFO = {
    AnomalyType.LATENCY_SPIKE: (
        "Latency Spike",
        "critical",
        "Response times have increased significantly above the baseline",
    ),
    AnomalyType.ERROR_RATE_SPIKE: (
        "Error Rate Spike",
        "critical",
        "Error rate has increased significantly above normal levels",
    ),
    AnomalyType.TRAFFIC_SPIKE: (
        "Traffic Spike",
        "warning",
        "Request volume has increased significantly above normal levels",
    ),
    AnomalyType.TRAFFIC_DROP: (
        "Traffic Drop",
        "warning",
        "Request volume has dropped significantly below normal levels",
    ),
    AnomalyType.SLOW_DEPENDENCY: (
        "Slow Dependency",
        "warning",
        "An external dependency is responding slower than usual",
    ),
    AnomalyType.MEMORY_SPIKE: (
        "Memory Spike",
        "warning",
        "Memory usage has increased significantly above normal levels",
    ),
    AnomalyType.CPU_SPIKE: (
        "CPU Spike",
        "warning",
        "CPU usage has increased significantly above normal levels",
    ),
}


class InvalidStatusTransition(ValueError):
    """Raised when an anomaly status change is not allowed."""

    def __init__(self, current: "AnomalyStatus", requested: "AnomalyStatus") -> None:
        super().__init__(
            f"Cannot transition anomaly from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class AnomalyStatus(str, Enum):
    """Lifecycle status of a detected anomaly.

    ACTIVE -> ACKNOWLEDGED | RESOLVED | IGNORED
    ACKNOWLEDGED -> RESOLVED | IGNORED
    RESOLVED and IGNORED are terminal.
    """

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    IGNORED = "ignored"

    @property
    def needs_attention(self) -> bool:
        """Active or acknowledged anomalies still represent an ongoing condition."""
        return self in (AnomalyStatus.ACTIVE, AnomalyStatus.ACKNOWLEDGED)

    @property
    def is_terminal(self) -> bool:
        return self in (AnomalyStatus.RESOLVED, AnomalyStatus.IGNORED)

    def can_transition_to(self, target: "AnomalyStatus") -> bool:
        """Check if moving from this status to ``target`` is allowed."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    AnomalyStatus.ACTIVE: frozenset(
        {AnomalyStatus.ACKNOWLEDGED, AnomalyStatus.RESOLVED, AnomalyStatus.IGNORED}
    ),
    AnomalyStatus.ACKNOWLEDGED: frozenset({AnomalyStatus.RESOLVED, AnomalyStatus.IGNORED}),
    AnomalyStatus.RESOLVED: frozenset(),
    AnomalyStatus.IGNORED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=False)
class Anomaly:
    """Immutable record of a detected deviation.

    Identity is the deterministic ``id`` alone: two instances with the same
    id are the same anomaly, whatever their status. Status changes produce
    new instances through ``with_status``.
    """

    id: str
    anomaly_type: AnomalyType
    baseline_value: float
    current_value: float
    deviation: float = 0.0  # z-score, 0.0 for fixed-threshold rules
    percentage_change: float = 0.0

    metric: str | None = None
    endpoint: str | None = None
    service: str | None = None

    detected_at: datetime = field(default_factory=_utcnow)
    resolved_at: datetime | None = None
    possible_causes: tuple[PossibleCause, ...] = ()
    status: AnomalyStatus = AnomalyStatus.ACTIVE

    def __post_init__(self) -> None:
        """Validate anomaly constraints."""
        if not self.id:
            raise ValueError("Anomaly id is required")
        # Accept any sequence of causes but store an immutable tuple
        object.__setattr__(self, "possible_causes", tuple(self.possible_causes))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Anomaly):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_active(self) -> bool:
        return self.status == AnomalyStatus.ACTIVE

    @property
    def is_resolved(self) -> bool:
        return self.status == AnomalyStatus.RESOLVED

    @property
    def is_critical(self) -> bool:
        return self.anomaly_type.is_critical

    @property
    def is_endpoint_scoped(self) -> bool:
        return self.endpoint is not None

    def with_status(self, status: AnomalyStatus, at: datetime | None = None) -> "Anomaly":
        """Return a copy with a new status.

        Moving to RESOLVED stamps ``resolved_at``; every other field is kept.
        """
        resolved_at = self.resolved_at
        if status == AnomalyStatus.RESOLVED:
            resolved_at = at or _utcnow()
        return dataclasses.replace(self, status=status, resolved_at=resolved_at)

    def with_causes(self, causes: list[PossibleCause]) -> "Anomaly":
        """Return a copy carrying the given possible causes."""
        return dataclasses.replace(self, possible_causes=tuple(causes))

    def summary(self) -> str:
        """One-line description, e.g. ``Latency Spike: 50.00 -> 600.00 (+1100.0%)``."""
        sign = "+" if self.percentage_change >= 0 else ""
        return (
            f"{self.anomaly_type.display_name}: {self.baseline_value:.2f} -> "
            f"{self.current_value:.2f} ({sign}{self.percentage_change:.1f}%)"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.anomaly_type.severity,
            "metric": self.metric,
            "endpoint": self.endpoint,
            "service": self.service,
            "baseline_value": self.baseline_value,
            "current_value": self.current_value,
            "deviation": self.deviation,
            "percentage_change": self.percentage_change,
            "detected_at": self.detected_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "possible_causes": [c.to_dict() for c in self.possible_causes],
            "status": self.status.value,
            "summary": self.summary(),
        }


@dataclass(frozen=True)
class AnomalyStats:
    """Counts of stored anomalies plus timing of the last detection run."""

    total: int = 0
    active: int = 0
    critical: int = 0
    warning: int = 0
    resolved: int = 0
    last_run_at: datetime | None = None
    last_run_duration: timedelta = field(default_factory=timedelta)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "active": self.active,
            "critical": self.critical,
            "warning": self.warning,
            "resolved": self.resolved,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run_duration_ms": self.last_run_duration.total_seconds() * 1000,
        }
