"""
HTTP trace source.

Read-only access to a trace store's query API.

DESIGN RULES:
- HTTP GET only, pull-based
- Short timeout, no retries, no backoff
- Every network or payload error becomes a TraceQueryFailure
"""

import json

import requests
import structlog

from anomaly_engine.models.trace import TimeRange, Trace
from anomaly_engine.sources.interface import (
    TraceQueryFailure,
    TraceQueryResult,
    TraceQuerySuccess,
    TraceSource,
)

logger = structlog.get_logger(__name__)


class HttpTraceSource(TraceSource):
    """Pull traces from a trace store over HTTP.

    Expects ``GET {base_url}{endpoint}?start_time=..&end_time=..&limit=..``
    to answer either a JSON list of trace objects or ``{"data": [...]}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 1000,
        endpoint: str = "/query/traces",
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.endpoint = endpoint
        self._session = session or requests.Session()

    def _build_params(self, time_range: TimeRange, limit: int) -> dict[str, str]:
        """Build query parameters from a time range."""
        return {
            "start_time": time_range.start.isoformat(),
            "end_time": time_range.end.isoformat(),
            "limit": str(limit),
        }

    def query_traces(self, time_range: TimeRange, limit: int) -> TraceQueryResult:
        """Fetch traces for ``time_range`` from the trace store."""
        url = f"{self.base_url}{self.endpoint}"
        params = self._build_params(time_range, limit)

        try:
            # No retries - fail fast and let the next cycle try again
            response = self._session.get(url, params=params, timeout=self.timeout_ms / 1000.0)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning("Trace store request failed", url=url, error=str(e))
            return TraceQueryFailure(reason=f"request failed: {e}")
        except json.JSONDecodeError as e:
            return TraceQueryFailure(reason=f"invalid JSON payload: {e}")

        # Handle wrapped response format
        if isinstance(data, dict) and "data" in data:
            data = data["data"]
        if not isinstance(data, list):
            return TraceQueryFailure(reason="unexpected payload shape")

        try:
            traces = [Trace.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            return TraceQueryFailure(reason=f"invalid trace record: {e}")

        return TraceQuerySuccess(traces=traces[:limit])
