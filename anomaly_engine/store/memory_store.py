"""In-memory anomaly store implementation."""

import threading
from datetime import datetime

from anomaly_engine.models.anomaly import (
    Anomaly,
    AnomalyStatus,
    AnomalyType,
    InvalidStatusTransition,
)
from anomaly_engine.store.interface import BaseAnomalyStore


class MemoryAnomalyStore(BaseAnomalyStore):
    """Thread-safe in-memory implementation of AnomalyStore.

    PROPERTIES:
    - Thread-safe: a single lock guards the id -> anomaly map
    - Atomic per-key replace: readers see either the old or the new instance
    - In-memory: data is lost on process restart
    """

    def __init__(self) -> None:
        """Initialize the in-memory store."""
        self._by_id: dict[str, Anomaly] = {}
        self._lock = threading.Lock()

    def insert_if_absent_active(self, anomaly: Anomaly) -> bool:
        """Insert ``anomaly`` unless an ongoing entry shares its id."""
        with self._lock:
            existing = self._by_id.get(anomaly.id)
            if existing is not None and existing.status.needs_attention:
                return False
            self._by_id[anomaly.id] = anomaly
            return True

    def get(self, anomaly_id: str) -> Anomaly | None:
        with self._lock:
            return self._by_id.get(anomaly_id)

    def list_anomalies(self, status: AnomalyStatus | None = None) -> list[Anomaly]:
        """List anomalies, optionally filtered by status (newest first)."""
        with self._lock:
            candidates = [
                a for a in self._by_id.values() if status is None or a.status == status
            ]
        return self._sort_by_detected_at(candidates)

    def list_by_type(self, anomaly_type: AnomalyType) -> list[Anomaly]:
        """List anomalies of one type (newest first)."""
        with self._lock:
            candidates = [a for a in self._by_id.values() if a.anomaly_type == anomaly_type]
        return self._sort_by_detected_at(candidates)

    def update_status(
        self,
        anomaly_id: str,
        status: AnomalyStatus,
        at: datetime | None = None,
    ) -> Anomaly | None:
        """Move an anomaly to ``status``.

        Re-applying the current status returns the stored anomaly unchanged.
        """
        with self._lock:
            existing = self._by_id.get(anomaly_id)
            if existing is None:
                return None
            if existing.status == status:
                return existing
            if not existing.status.can_transition_to(status):
                raise InvalidStatusTransition(existing.status, status)

            updated = existing.with_status(status, at=at)
            self._by_id[anomaly_id] = updated
            return updated

    def resolve_if_active(self, anomaly_id: str, at: datetime) -> Anomaly | None:
        with self._lock:
            existing = self._by_id.get(anomaly_id)
            if existing is None or existing.status != AnomalyStatus.ACTIVE:
                return None
            resolved = existing.with_status(AnomalyStatus.RESOLVED, at=at)
            self._by_id[anomaly_id] = resolved
            return resolved

    def clear_resolved(self) -> int:
        """Remove RESOLVED and IGNORED anomalies."""
        with self._lock:
            finished = [k for k, a in self._by_id.items() if a.status.is_terminal]
            for key in finished:
                del self._by_id[key]
            return len(finished)

    def clear_expired(self, older_than: datetime) -> int:
        """Remove finished anomalies whose resolution (or detection) predates ``older_than``.

        IGNORED anomalies carry no resolution time, so their detection time
        is used instead.
        """
        with self._lock:
            expired = [
                k
                for k, a in self._by_id.items()
                if a.status.is_terminal and (a.resolved_at or a.detected_at) < older_than
            ]
            for key in expired:
                del self._by_id[key]
            return len(expired)

    def clear_all(self) -> None:
        with self._lock:
            self._by_id.clear()

    def counts(self) -> dict[str, int]:
        with self._lock:
            snapshot = list(self._by_id.values())
        return self._count(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
