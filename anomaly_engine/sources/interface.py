"""Interface for trace sources.

The trace store is an external collaborator. The engine only needs a
time-range query, and it receives collaborator failures as values instead
of exceptions so that a failing store can never break a detection cycle.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from anomaly_engine.models.trace import TimeRange, Trace


@dataclass(frozen=True)
class TraceQuerySuccess:
    """Traces returned by a successful query (arbitrary order)."""

    traces: list[Trace] = field(default_factory=list)


@dataclass(frozen=True)
class TraceQueryFailure:
    """A query that could not be served."""

    reason: str


TraceQueryResult = TraceQuerySuccess | TraceQueryFailure


class TraceSource(ABC):
    """Abstract read-only access to finished request traces.

    Implementations MUST NOT raise for collaborator errors; they return a
    ``TraceQueryFailure`` instead.
    """

    @abstractmethod
    def query_traces(self, time_range: TimeRange, limit: int) -> TraceQueryResult:
        """Query traces whose start time falls inside ``time_range``.

        Args:
            time_range: Half-open range on trace start time
            limit: Maximum number of traces to return

        Returns:
            ``TraceQuerySuccess`` with at most ``limit`` traces, or
            ``TraceQueryFailure`` describing why the query failed
        """
        ...
