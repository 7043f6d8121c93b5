"""Trace models consumed from the trace store.

Traces are finished request spans collected elsewhere. This engine only
reads them; once queried they are never modified.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no", ""})


def _parse_flag(value: Any) -> bool:
    """Read a boolean wire field, accepting JSON booleans, 0/1 and their string forms."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass(frozen=True)
class TimeRange:
    """Half-open time range ``[start, end)`` used for trace queries."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        """Validate time range constraints."""
        if self.start >= self.end:
            raise ValueError("Time range start must be before end")

    def contains(self, instant: datetime) -> bool:
        """Check whether an instant falls inside the range."""
        return self.start <= instant < self.end


@dataclass(frozen=True)
class Trace:
    """A completed request trace.

    Only the fields the detector needs are modelled: timing, error flag and
    the HTTP method/URL used to group requests by endpoint.
    """

    trace_id: str
    start_time: datetime
    duration_ms: float
    has_error: bool = False
    http_method: str | None = None
    http_url: str | None = None
    service_name: str | None = None

    def __post_init__(self) -> None:
        """Validate trace constraints."""
        if self.duration_ms < 0:
            raise ValueError("Trace duration cannot be negative")

    @property
    def is_http(self) -> bool:
        """Check if the trace carries enough HTTP data to group by endpoint."""
        return bool(self.http_method) and bool(self.http_url)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "trace_id": self.trace_id,
            "start_time": self.start_time.isoformat(),
            "duration_ms": self.duration_ms,
            "has_error": self.has_error,
            "http_method": self.http_method,
            "http_url": self.http_url,
            "service_name": self.service_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trace":
        """Create a Trace from a dictionary.

        Naive timestamps are interpreted as UTC.
        """
        start_time = datetime.fromisoformat(data["start_time"])
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)
        return cls(
            trace_id=str(data["trace_id"]),
            start_time=start_time,
            duration_ms=float(data["duration_ms"]),
            has_error=_parse_flag(data.get("has_error")),
            http_method=data.get("http_method"),
            http_url=data.get("http_url"),
            service_name=data.get("service_name"),
        )
