"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


def _service_name(request: Request) -> str:
    return request.app.state.settings.service_name


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns:
        Service health status
    """
    return {
        "status": "healthy",
        "service": _service_name(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness probe endpoint.

    Ready once the detection engine exists. Reports whether background
    detection is running and when the last run happened.

    Returns:
        Readiness status
    """
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    stats = state.engine.get_stats()
    return {
        "status": "ready",
        "service": _service_name(request),
        "detection_scheduled": scheduler is not None and scheduler.is_running,
        "last_run_at": stats.last_run_at.isoformat() if stats.last_run_at else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/live")
async def liveness_check(request: Request) -> dict:
    """Liveness probe endpoint.

    Returns:
        Liveness status
    """
    return {
        "status": "alive",
        "service": _service_name(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
