"""Heuristic cause suggestions for detected anomalies."""

from typing import assert_never

from anomaly_engine.models.anomaly import AnomalyType
from anomaly_engine.models.cause import CauseType, Confidence, PossibleCause
from anomaly_engine.models.snapshot import MetricSnapshot

SLOW_ENDPOINT_THRESHOLD_MS = 2000.0


class CauseAdvisor:
    """Suggests coarse, rule-of-thumb causes for an anomaly type.

    Output depends only on the anomaly type and the snapshot, so the same
    inputs always yield the same list in the same order.
    """

    DISCLAIMER = (
        "Possible causes are heuristic hints derived from aggregate trace "
        "metrics. They are starting points for investigation, not a diagnosis."
    )

    def suggest(self, anomaly_type: AnomalyType, snapshot: MetricSnapshot) -> list[PossibleCause]:
        """List possible causes for ``anomaly_type``.

        Args:
            anomaly_type: Type of the detected anomaly
            snapshot: Snapshot the anomaly was detected on

        Returns:
            Possible causes, most specific first; empty for types without
            heuristics
        """
        if anomaly_type is AnomalyType.LATENCY_SPIKE:
            return self._latency_causes(snapshot)
        elif anomaly_type is AnomalyType.ERROR_RATE_SPIKE:
            return [
                PossibleCause(
                    description="Check for recent deployments",
                    cause_type=CauseType.RECENT_DEPLOY,
                    confidence=Confidence.MEDIUM,
                ),
                PossibleCause(
                    description="Check external service health",
                    cause_type=CauseType.EXTERNAL_SERVICE,
                    confidence=Confidence.MEDIUM,
                ),
            ]
        elif anomaly_type is AnomalyType.TRAFFIC_SPIKE:
            return [
                PossibleCause(
                    description="Possible traffic surge from external source",
                    cause_type=CauseType.TRAFFIC_CHANGE,
                    confidence=Confidence.MEDIUM,
                ),
            ]
        elif anomaly_type is AnomalyType.TRAFFIC_DROP:
            return [
                PossibleCause(
                    description="Check load balancer and routing",
                    cause_type=CauseType.CONFIGURATION_CHANGE,
                    confidence=Confidence.MEDIUM,
                ),
                PossibleCause(
                    description="Check for client-side issues",
                    cause_type=CauseType.EXTERNAL_SERVICE,
                    confidence=Confidence.LOW,
                ),
            ]
        elif (
            anomaly_type is AnomalyType.SLOW_DEPENDENCY
            or anomaly_type is AnomalyType.MEMORY_SPIKE
            or anomaly_type is AnomalyType.CPU_SPIKE
        ):
            return []
        else:
            assert_never(anomaly_type)

    @staticmethod
    def _latency_causes(snapshot: MetricSnapshot) -> list[PossibleCause]:
        causes = []

        # Highest p99 first, ties broken by endpoint key
        slow = sorted(
            (m for m in snapshot.endpoint_metrics.values() if m.p99_latency > SLOW_ENDPOINT_THRESHOLD_MS),
            key=lambda m: (-m.p99_latency, m.endpoint),
        )
        if slow:
            worst = slow[0]
            causes.append(
                PossibleCause(
                    description=f"Slow endpoint: {worst.endpoint} ({worst.p99_latency:.0f}ms)",
                    cause_type=CauseType.SLOW_QUERIES,
                    confidence=Confidence.MEDIUM,
                    details=f"{len(slow)} endpoint(s) above {SLOW_ENDPOINT_THRESHOLD_MS:.0f}ms p99",
                )
            )

        causes.append(
            PossibleCause(
                description="Check database query performance",
                cause_type=CauseType.SLOW_QUERIES,
                confidence=Confidence.MEDIUM,
            )
        )
        return causes
