"""Anomaly API routes."""

import re
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from anomaly_engine.causes import CauseAdvisor
from anomaly_engine.engine import DEFAULT_WINDOW, AnomalyDetectionEngine
from anomaly_engine.models import (
    Anomaly,
    AnomalyStats,
    AnomalyStatus,
    AnomalyType,
    InvalidStatusTransition,
)

router = APIRouter(prefix="/anomalies", tags=["Anomalies"])

_WINDOW_PATTERN = re.compile(r"^(\d+)([smhd])$")
_WINDOW_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def get_engine(request: Request) -> AnomalyDetectionEngine:
    """Get the detection engine created for this application."""
    return request.app.state.engine


def parse_window(raw: str | None) -> timedelta:
    """Parse a window such as ``30s``, ``5m``, ``1h`` or ``7d``.

    Anything unparseable (or non-positive) falls back to five minutes.
    """
    if not raw:
        return DEFAULT_WINDOW
    match = _WINDOW_PATTERN.match(raw.strip().lower())
    if match is None:
        return DEFAULT_WINDOW
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        return DEFAULT_WINDOW
    return timedelta(**{_WINDOW_UNITS[unit]: amount})


def _parse_status(raw: str) -> AnomalyStatus:
    try:
        return AnomalyStatus(raw.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {raw}")


def _parse_type(raw: str) -> AnomalyType:
    try:
        return AnomalyType(raw.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid anomaly type: {raw}")


# --- Request/Response Models ---


class PossibleCauseResponse(BaseModel):
    """Response model for a possible cause."""

    description: str
    cause_type: str
    confidence: str
    details: str | None = None


class AnomalyResponse(BaseModel):
    """Response model for an anomaly."""

    id: str
    anomaly_type: str
    display_name: str
    severity: str
    status: str
    metric: str | None
    endpoint: str | None
    service: str | None
    baseline_value: float
    current_value: float
    deviation: float
    percentage_change: float
    detected_at: str
    resolved_at: str | None
    possible_causes: list[PossibleCauseResponse]
    summary: str

    @classmethod
    def from_anomaly(cls, anomaly: Anomaly) -> "AnomalyResponse":
        """Create response from domain model."""
        return cls(
            id=anomaly.id,
            anomaly_type=anomaly.anomaly_type.value,
            display_name=anomaly.anomaly_type.display_name,
            severity=anomaly.anomaly_type.severity,
            status=anomaly.status.value,
            metric=anomaly.metric,
            endpoint=anomaly.endpoint,
            service=anomaly.service,
            baseline_value=anomaly.baseline_value,
            current_value=anomaly.current_value,
            deviation=anomaly.deviation,
            percentage_change=anomaly.percentage_change,
            detected_at=anomaly.detected_at.isoformat(),
            resolved_at=anomaly.resolved_at.isoformat() if anomaly.resolved_at else None,
            possible_causes=[
                PossibleCauseResponse(**cause.to_dict()) for cause in anomaly.possible_causes
            ],
            summary=anomaly.summary(),
        )


class AnomalyListResponse(BaseModel):
    """Response model for a list of anomalies."""

    anomalies: list[AnomalyResponse]
    count: int


class DetectionResponse(BaseModel):
    """Response model for a detection run."""

    window_seconds: float
    detected: list[AnomalyResponse]
    count: int
    disclaimer: str = CauseAdvisor.DISCLAIMER


class StatusUpdateRequest(BaseModel):
    """Request model for a status change."""

    status: str = Field(..., description="Target status: acknowledged, resolved or ignored")


class StatsResponse(BaseModel):
    """Response model for anomaly statistics."""

    total: int
    active: int
    critical: int
    warning: int
    resolved: int
    last_run_at: str | None
    last_run_duration_ms: float

    @classmethod
    def from_stats(cls, stats: AnomalyStats) -> "StatsResponse":
        return cls(**stats.to_dict())


class AnomalyTypeResponse(BaseModel):
    """Response model describing an anomaly type."""

    name: str
    display_name: str
    severity: str
    description: str


# --- Endpoints ---


@router.post("/detect", response_model=DetectionResponse)
def run_detection(
    window: str | None = Query(default="5m", description="Window such as 30s, 5m, 1h, 1d"),
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> DetectionResponse:
    """Run one detection cycle over the trailing window.

    Returns only anomalies created by this run. A run requested while
    another one is in progress returns an empty list.
    """
    duration = parse_window(window)
    detected = engine.detect(duration)
    return DetectionResponse(
        window_seconds=duration.total_seconds(),
        detected=[AnomalyResponse.from_anomaly(a) for a in detected],
        count=len(detected),
    )


@router.get("", response_model=AnomalyListResponse)
async def list_anomalies(
    status: str | None = Query(default=None, description="Filter by status"),
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyListResponse:
    """List anomalies, newest first, optionally filtered by status."""
    status_filter = _parse_status(status) if status else None
    anomalies = engine.get_anomalies(status_filter)
    return AnomalyListResponse(
        anomalies=[AnomalyResponse.from_anomaly(a) for a in anomalies],
        count=len(anomalies),
    )


@router.get("/stats", response_model=StatsResponse)
async def get_statistics(
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> StatsResponse:
    """Get anomaly counts and timing of the last detection run."""
    return StatsResponse.from_stats(engine.get_stats())


@router.get("/types", response_model=list[AnomalyTypeResponse])
async def list_types() -> list[AnomalyTypeResponse]:
    """List every anomaly type with its severity and description."""
    return [
        AnomalyTypeResponse(
            name=t.value,
            display_name=t.display_name,
            severity=t.severity,
            description=t.description,
        )
        for t in AnomalyType
    ]


@router.get("/config")
async def get_config(
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Get the active detection configuration."""
    config = engine.config
    return {
        "enabled": config.enabled,
        "detection_interval_seconds": config.detection_interval.total_seconds(),
        "baseline_window_seconds": config.baseline_window.total_seconds(),
        "min_samples_for_baseline": config.min_samples_for_baseline,
        "latency_z_score_threshold": config.latency_z_score_threshold,
        "latency_min_increase_percent": config.latency_min_increase_percent,
        "error_rate_z_score_threshold": config.error_rate_z_score_threshold,
        "error_rate_min_absolute": config.error_rate_min_absolute,
        "traffic_z_score_threshold": config.traffic_z_score_threshold,
        "alert_on_traffic_decrease": config.alert_on_traffic_decrease,
        "retention_period_seconds": config.retention_period.total_seconds(),
    }


@router.get("/type/{anomaly_type}", response_model=AnomalyListResponse)
async def list_by_type(
    anomaly_type: str,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyListResponse:
    """List anomalies of one type, newest first."""
    anomalies = engine.get_anomalies_by_type(_parse_type(anomaly_type))
    return AnomalyListResponse(
        anomalies=[AnomalyResponse.from_anomaly(a) for a in anomalies],
        count=len(anomalies),
    )


@router.delete("/resolved", status_code=204)
async def clear_resolved(
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> Response:
    """Remove resolved and ignored anomalies."""
    engine.clear_resolved()
    return Response(status_code=204)


@router.delete("/baselines", status_code=204)
async def refresh_baselines(
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> Response:
    """Drop cached baselines so the next run recomputes them from history."""
    engine.refresh_baselines()
    return Response(status_code=204)


@router.delete("", status_code=204)
async def clear_all(
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> Response:
    """Remove every anomaly."""
    engine.clear_all()
    return Response(status_code=204)


@router.get("/{anomaly_id}", response_model=AnomalyResponse)
async def get_anomaly(
    anomaly_id: str,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyResponse:
    """Get a specific anomaly by id.

    Raises:
        404: If the anomaly is unknown
    """
    anomaly = engine.get_anomaly(anomaly_id)
    if anomaly is None:
        raise HTTPException(status_code=404, detail="Anomaly not found")
    return AnomalyResponse.from_anomaly(anomaly)


def _transition(
    engine: AnomalyDetectionEngine,
    anomaly_id: str,
    status: AnomalyStatus,
) -> AnomalyResponse:
    try:
        updated = engine.update_status(anomaly_id, status)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail="Anomaly not found")
    return AnomalyResponse.from_anomaly(updated)


@router.patch("/{anomaly_id}/status", response_model=AnomalyResponse)
async def update_status(
    anomaly_id: str,
    request: StatusUpdateRequest,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyResponse:
    """Move an anomaly to a new status.

    Raises:
        400: If the status is not recognized
        404: If the anomaly is unknown
        409: If the lifecycle forbids the change
    """
    return _transition(engine, anomaly_id, _parse_status(request.status))


@router.post("/{anomaly_id}/acknowledge", response_model=AnomalyResponse)
async def acknowledge(
    anomaly_id: str,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyResponse:
    return _transition(engine, anomaly_id, AnomalyStatus.ACKNOWLEDGED)


@router.post("/{anomaly_id}/resolve", response_model=AnomalyResponse)
async def resolve(
    anomaly_id: str,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyResponse:
    return _transition(engine, anomaly_id, AnomalyStatus.RESOLVED)


@router.post("/{anomaly_id}/ignore", response_model=AnomalyResponse)
async def ignore(
    anomaly_id: str,
    engine: AnomalyDetectionEngine = Depends(get_engine),
) -> AnomalyResponse:
    return _transition(engine, anomaly_id, AnomalyStatus.IGNORED)
