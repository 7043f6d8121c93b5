"""Trace source module."""

from anomaly_engine.sources.http_source import HttpTraceSource
from anomaly_engine.sources.interface import (
    TraceQueryFailure,
    TraceQueryResult,
    TraceQuerySuccess,
    TraceSource,
)
from anomaly_engine.sources.memory_source import InMemoryTraceSource

__all__ = [
    "HttpTraceSource",
    "InMemoryTraceSource",
    "TraceQueryFailure",
    "TraceQueryResult",
    "TraceQuerySuccess",
    "TraceSource",
]
