"""Shared fixtures for engine and API tests."""

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Callable

import pytest

from anomaly_engine.config import DetectionConfig
from anomaly_engine.models import Trace
from anomaly_engine.sources import InMemoryTraceSource

# Minute-aligned so per-minute buckets line up with the windows below
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

TraceFactory = Callable[..., Trace]


class FakeClock:
    """Settable clock for deterministic time in tests."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at NOW."""
    return FakeClock()


@pytest.fixture
def make_trace() -> TraceFactory:
    """Factory for traces with unique ids."""
    ids = count(1)

    def _make(
        start_time: datetime = NOW,
        duration_ms: float = 50.0,
        has_error: bool = False,
        http_method: str | None = "GET",
        http_url: str | None = "/api/orders",
    ) -> Trace:
        return Trace(
            trace_id=f"trace-{next(ids)}",
            start_time=start_time,
            duration_ms=duration_ms,
            has_error=has_error,
            http_method=http_method,
            http_url=http_url,
        )

    return _make


@pytest.fixture
def detection_config() -> DetectionConfig:
    """Default thresholds with a baseline requirement small enough for tests."""
    return DetectionConfig(min_samples_for_baseline=10)


@pytest.fixture
def history(make_trace: TraceFactory) -> list[Trace]:
    """100 minutes of healthy history ending 5 minutes before NOW.

    Ten requests per minute; per-minute p99 alternates 45ms / 55ms, giving a
    latency baseline of mean 50 and standard deviation 5.
    """
    start = NOW - timedelta(minutes=105)
    traces = []
    for minute in range(100):
        duration = 45.0 if minute % 2 == 0 else 55.0
        for i in range(10):
            traces.append(
                make_trace(
                    start_time=start + timedelta(minutes=minute, seconds=i * 5),
                    duration_ms=duration,
                )
            )
    return traces


@pytest.fixture
def slow_window(make_trace: TraceFactory) -> list[Trace]:
    """100 requests at 600ms spread over the 5 minutes before NOW."""
    start = NOW - timedelta(minutes=5)
    return [
        make_trace(
            start_time=start + timedelta(seconds=i * 3),
            duration_ms=600.0,
            http_url=f"/api/orders/{i}",
        )
        for i in range(100)
    ]


@pytest.fixture
def latency_spike_source(history: list[Trace], slow_window: list[Trace]) -> InMemoryTraceSource:
    """Trace source holding healthy history followed by a latency spike."""
    return InMemoryTraceSource(history + slow_window)
