"""Periodic background detection."""

import threading
from datetime import timedelta

import structlog

from anomaly_engine.engine.orchestrator import DEFAULT_WINDOW, AnomalyDetectionEngine

logger = structlog.get_logger(__name__)


class DetectionScheduler:
    """Runs detection cycles on a daemon thread at a fixed interval.

    Each tick runs ``engine.detect(window)`` followed by the retention purge.
    Errors are logged and the loop keeps going.
    """

    def __init__(
        self,
        engine: AnomalyDetectionEngine,
        interval: timedelta,
        window: timedelta | None = None,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("Scheduler interval must be positive")
        self._engine = engine
        self._interval = interval
        self._window = window or DEFAULT_WINDOW
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread; no-op if already running."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="anomaly-detection",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Detection scheduler started",
            interval_seconds=self._interval.total_seconds(),
            window_seconds=self._window.total_seconds(),
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to stop and wait up to ``timeout`` seconds."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Detection scheduler stopped")

    def run_once(self) -> None:
        """Run a single tick on the calling thread."""
        try:
            self._engine.detect(self._window)
            self._engine.purge_expired()
        except Exception:
            logger.exception("Scheduled detection tick failed")

    def _loop(self) -> None:
        # Event.wait returns True once stop() is called
        while not self._stop.wait(self._interval.total_seconds()):
            self.run_once()
