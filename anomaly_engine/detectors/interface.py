"""Interface for anomaly detectors."""

import hashlib
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Mapping

from anomaly_engine.baselines.statistical import BaselineMetric
from anomaly_engine.config.settings import DetectionConfig
from anomaly_engine.models.anomaly import Anomaly, AnomalyType
from anomaly_engine.models.baseline import BaselineStats
from anomaly_engine.models.snapshot import MetricSnapshot
from anomaly_engine.store.interface import AnomalyStore

GLOBAL_SCOPE = "global"

Baselines = Mapping[BaselineMetric, BaselineStats | None]


def anomaly_id(anomaly_type: AnomalyType, scope_key: str = GLOBAL_SCOPE) -> str:
    """Deterministic id for one ongoing condition.

    The same type over the same scope (``"global"`` or an endpoint key)
    always yields the same id, so repeated detections collapse onto one
    stored anomaly.
    """
    digest = hashlib.sha1(scope_key.encode("utf-8")).hexdigest()[:12]
    return f"{anomaly_type.value}-{digest}"


class AnomalyDetector(ABC):
    """Abstract interface for snapshot-based detection rules.

    All implementations MUST be:
    - Deterministic: same snapshot, baselines and store contents produce
      identical candidates
    - Read-only towards the store: it is consulted for deduplication only
    - Safe with degenerate statistics: a rule that cannot be evaluated is
      suppressed, never reported with an infinite or NaN value
    """

    def __init__(self, config: DetectionConfig, store: AnomalyStore) -> None:
        self._config = config
        self._store = store

    @abstractmethod
    def detect(
        self,
        snapshot: MetricSnapshot,
        baselines: Baselines | None = None,
        now: datetime | None = None,
    ) -> list[Anomaly]:
        """Evaluate the rules against one snapshot.

        Args:
            snapshot: Aggregated metrics of the recent window
            baselines: Historical baseline per metric; None entries mean the
                metric has no usable history this cycle
            now: Detection timestamp stamped on new anomalies

        Returns:
            New anomaly candidates, excluding conditions already being tracked
        """
        ...

    def _is_tracked(self, candidate_id: str) -> bool:
        """Check if an ACTIVE or ACKNOWLEDGED anomaly already has this id."""
        existing = self._store.get(candidate_id)
        return existing is not None and existing.status.needs_attention

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return now or datetime.now(timezone.utc)
