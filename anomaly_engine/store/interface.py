"""Interface for anomaly storage."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable

from anomaly_engine.models.anomaly import Anomaly, AnomalyStatus, AnomalyType


class AnomalyStore(ABC):
    """Abstract registry of detected anomalies keyed by anomaly id.

    CRITICAL PROPERTIES:
    - One entry per id; an entry is replaced whole, never mutated
    - An entry that still needs attention (ACTIVE or ACKNOWLEDGED) is never
      overwritten by a new detection of the same condition
    - Entries are removed only by the explicit clear operations
    - Safe for concurrent readers while a detection run writes
    """

    @abstractmethod
    def insert_if_absent_active(self, anomaly: Anomaly) -> bool:
        """Insert ``anomaly`` unless an entry with its id still needs attention.

        Returns:
            True if the anomaly was stored, False if it was discarded as a
            duplicate of an ongoing condition
        """
        ...

    @abstractmethod
    def get(self, anomaly_id: str) -> Anomaly | None:
        """Get an anomaly by id, or None if unknown."""
        ...

    @abstractmethod
    def list_anomalies(self, status: AnomalyStatus | None = None) -> list[Anomaly]:
        """List anomalies, optionally filtered by status (newest first)."""
        ...

    @abstractmethod
    def list_by_type(self, anomaly_type: AnomalyType) -> list[Anomaly]:
        """List anomalies of one type (newest first)."""
        ...

    @abstractmethod
    def update_status(
        self,
        anomaly_id: str,
        status: AnomalyStatus,
        at: datetime | None = None,
    ) -> Anomaly | None:
        """Move an anomaly to ``status``.

        Returns:
            The updated anomaly, or None if the id is unknown

        Raises:
            InvalidStatusTransition: If the lifecycle forbids the change
        """
        ...

    @abstractmethod
    def resolve_if_active(self, anomaly_id: str, at: datetime) -> Anomaly | None:
        """Resolve an anomaly only if it is still ACTIVE, in one atomic step.

        Returns:
            The resolved anomaly, or None if the id is unknown or the anomaly
            has left ACTIVE in the meantime
        """
        ...

    @abstractmethod
    def clear_resolved(self) -> int:
        """Remove RESOLVED and IGNORED anomalies; return how many were removed."""
        ...

    @abstractmethod
    def clear_expired(self, older_than: datetime) -> int:
        """Remove RESOLVED and IGNORED anomalies that ended before ``older_than``."""
        ...

    @abstractmethod
    def clear_all(self) -> None:
        """Remove every anomaly."""
        ...

    @abstractmethod
    def counts(self) -> dict[str, int]:
        """Counts keyed by total, active, critical, warning and resolved."""
        ...


class BaseAnomalyStore(AnomalyStore):
    """Base implementation with common functionality."""

    def active(self) -> list[Anomaly]:
        """List ACTIVE anomalies (newest first)."""
        return self.list_anomalies(AnomalyStatus.ACTIVE)

    def _sort_by_detected_at(
        self,
        anomalies: Iterable[Anomaly],
        descending: bool = True,
    ) -> list[Anomaly]:
        """Sort anomalies by detection time, newest first by default."""
        return sorted(anomalies, key=lambda a: a.detected_at, reverse=descending)

    @staticmethod
    def _count(anomalies: Iterable[Anomaly]) -> dict[str, int]:
        counts = {"total": 0, "active": 0, "critical": 0, "warning": 0, "resolved": 0}
        for anomaly in anomalies:
            counts["total"] += 1
            if anomaly.is_active:
                counts["active"] += 1
                if anomaly.is_critical:
                    counts["critical"] += 1
                else:
                    counts["warning"] += 1
            elif anomaly.is_resolved:
                counts["resolved"] += 1
        return counts
