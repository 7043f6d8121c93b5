"""Trace Anomaly Engine - FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from anomaly_engine.config import Settings, get_settings
from anomaly_engine.engine import AnomalyDetectionEngine, DetectionScheduler
from anomaly_engine.logger import setup_logging
from anomaly_engine.sources import HttpTraceSource, InMemoryTraceSource, TraceSource
from app.api import anomaly_router, health_router

logger = structlog.get_logger(__name__)


def build_engine(settings: Settings) -> AnomalyDetectionEngine:
    """Create the detection engine for the configured trace source."""
    source: TraceSource
    if settings.trace_source_url:
        source = HttpTraceSource(
            settings.trace_source_url,
            timeout_ms=settings.trace_source_timeout_ms,
        )
    else:
        logger.warning("No trace source URL configured, using an empty in-memory source")
        source = InMemoryTraceSource()
    return AnomalyDetectionEngine(source, config=settings.detection)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Starts background detection on startup and stops it on shutdown.
    """
    scheduler: DetectionScheduler | None = app.state.scheduler
    if scheduler is not None:
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()


def create_app(
    settings: Settings | None = None,
    engine: AnomalyDetectionEngine | None = None,
    start_scheduler: bool | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings (process settings when None)
        engine: Detection engine to serve (built from settings when None)
        start_scheduler: Run periodic detection in the background; defaults
            to the ``enabled`` flag of the detection config

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    engine = engine or build_engine(settings)
    if start_scheduler is None:
        start_scheduler = settings.detection.enabled

    app = FastAPI(
        title="Trace Anomaly Engine",
        description=(
            "Statistical anomaly detection over request traces. Compares recent "
            "latency, error rate and traffic against historical baselines and "
            "tracks detected anomalies through their lifecycle. "
            "**Possible causes are heuristic hints, not a diagnosis.**"
        ),
        version=settings.service_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.scheduler = (
        DetectionScheduler(engine, settings.detection.detection_interval)
        if start_scheduler
        else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(anomaly_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root(request: Request) -> dict:
        """Root endpoint with service information."""
        current = request.app.state.settings
        return {
            "service": current.service_name,
            "version": current.service_version,
            "description": "Statistical anomaly detection over request traces",
            "status": "operational",
        }

    return app


# Application instance
app = create_app()
