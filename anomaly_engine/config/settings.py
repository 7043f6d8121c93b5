"""Trace anomaly engine configuration settings."""

import os
from dataclasses import dataclass, field
from datetime import timedelta


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


def _env_seconds(name: str, default: timedelta) -> timedelta:
    raw = os.getenv(name)
    if raw is None:
        return default
    return timedelta(seconds=float(raw))


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds and windows for anomaly detection.

    All values are plain numbers/durations; nothing here is tied to a file
    format. Defaults match the values the dashboard has always shipped with.
    """

    enabled: bool = True
    detection_interval: timedelta = field(default_factory=lambda: timedelta(minutes=1))

    # Baselines
    baseline_window: timedelta = field(default_factory=lambda: timedelta(days=7))
    min_samples_for_baseline: int = 100
    baseline_cache_ttl: timedelta = field(default_factory=lambda: timedelta(minutes=5))

    # Global rules
    latency_z_score_threshold: float = 3.0
    latency_min_increase_percent: float = 100.0
    error_rate_z_score_threshold: float = 2.5
    error_rate_min_absolute: float = 1.0  # Percent
    traffic_z_score_threshold: float = 3.0
    alert_on_traffic_decrease: bool = True

    # Per-endpoint fixed thresholds
    endpoint_min_requests: int = 10
    endpoint_latency_threshold_ms: float = 5000.0
    endpoint_expected_latency_ms: float = 1000.0
    endpoint_error_rate_threshold: float = 10.0
    endpoint_expected_error_rate: float = 1.0

    # Trace source query bounds
    recent_query_limit: int = 1000
    baseline_query_limit: int = 10000

    retention_period: timedelta = field(default_factory=lambda: timedelta(days=7))

    def __post_init__(self) -> None:
        """Validate configuration constraints."""
        if self.detection_interval <= timedelta(0):
            raise ValueError("Detection interval must be positive")
        if self.baseline_window <= timedelta(0):
            raise ValueError("Baseline window must be positive")
        if self.min_samples_for_baseline < 1:
            raise ValueError("Minimum baseline samples must be at least 1")
        for name in (
            "latency_z_score_threshold",
            "error_rate_z_score_threshold",
            "traffic_z_score_threshold",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.recent_query_limit < 1 or self.baseline_query_limit < 1:
            raise ValueError("Query limits must be at least 1")

    @classmethod
    def from_env(cls) -> "DetectionConfig":
        """Load detection settings from ANOMALY_* environment variables."""
        defaults = cls()
        return cls(
            enabled=_env_bool("ANOMALY_ENABLED", defaults.enabled),
            detection_interval=_env_seconds(
                "ANOMALY_DETECTION_INTERVAL_SECONDS", defaults.detection_interval
            ),
            baseline_window=_env_seconds(
                "ANOMALY_BASELINE_WINDOW_SECONDS", defaults.baseline_window
            ),
            min_samples_for_baseline=int(
                os.getenv("ANOMALY_MIN_SAMPLES_FOR_BASELINE", str(defaults.min_samples_for_baseline))
            ),
            latency_z_score_threshold=float(
                os.getenv("ANOMALY_LATENCY_Z_SCORE_THRESHOLD", str(defaults.latency_z_score_threshold))
            ),
            latency_min_increase_percent=float(
                os.getenv(
                    "ANOMALY_LATENCY_MIN_INCREASE_PERCENT",
                    str(defaults.latency_min_increase_percent),
                )
            ),
            error_rate_z_score_threshold=float(
                os.getenv(
                    "ANOMALY_ERROR_RATE_Z_SCORE_THRESHOLD",
                    str(defaults.error_rate_z_score_threshold),
                )
            ),
            error_rate_min_absolute=float(
                os.getenv("ANOMALY_ERROR_RATE_MIN_ABSOLUTE", str(defaults.error_rate_min_absolute))
            ),
            traffic_z_score_threshold=float(
                os.getenv("ANOMALY_TRAFFIC_Z_SCORE_THRESHOLD", str(defaults.traffic_z_score_threshold))
            ),
            alert_on_traffic_decrease=_env_bool(
                "ANOMALY_ALERT_ON_TRAFFIC_DECREASE", defaults.alert_on_traffic_decrease
            ),
            retention_period=_env_seconds(
                "ANOMALY_RETENTION_PERIOD_SECONDS", defaults.retention_period
            ),
        )


@dataclass(frozen=True)
class Settings:
    """Global settings for the anomaly engine service."""

    # Service identification
    service_name: str = "trace-anomaly-engine"
    service_version: str = "0.1.0"

    # Trace store integration (read-only, pull-based)
    trace_source_url: str | None = None
    trace_source_timeout_ms: int = 1000

    detection: DetectionConfig = field(default_factory=DetectionConfig)

    # API settings
    api_prefix: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            trace_source_url=os.getenv("TRACE_SOURCE_URL"),
            trace_source_timeout_ms=int(os.getenv("TRACE_SOURCE_TIMEOUT_MS", "1000")),
            detection=DetectionConfig.from_env(),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure(settings: Settings) -> None:
    """Configure the global settings (primarily for testing)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for testing)."""
    global _settings
    _settings = None
