"""In-memory trace source implementation."""

import threading
from typing import Iterable

from anomaly_engine.models.trace import TimeRange, Trace
from anomaly_engine.sources.interface import TraceQueryResult, TraceQuerySuccess, TraceSource


class InMemoryTraceSource(TraceSource):
    """Thread-safe in-memory trace source.

    Used for tests, local development and embedding the engine next to an
    in-process trace buffer. Traces are immutable, so queries return the
    stored instances directly.
    """

    def __init__(self, traces: Iterable[Trace] | None = None) -> None:
        """Initialize the source, optionally pre-loaded with traces."""
        self._traces: list[Trace] = list(traces) if traces else []
        self._lock = threading.Lock()

    def add(self, trace: Trace) -> None:
        """Append a single trace."""
        with self._lock:
            self._traces.append(trace)

    def add_all(self, traces: Iterable[Trace]) -> None:
        """Append several traces."""
        with self._lock:
            self._traces.extend(traces)

    def clear(self) -> None:
        """Remove all traces."""
        with self._lock:
            self._traces.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._traces)

    def query_traces(self, time_range: TimeRange, limit: int) -> TraceQueryResult:
        """Return traces starting inside ``time_range``, newest first, up to ``limit``."""
        with self._lock:
            matching = [t for t in self._traces if time_range.contains(t.start_time)]

        matching.sort(key=lambda t: t.start_time, reverse=True)
        return TraceQuerySuccess(traces=matching[:limit])
