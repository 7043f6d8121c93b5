"""Anomaly engine configuration module."""

from anomaly_engine.config.settings import (
    DetectionConfig,
    Settings,
    configure,
    get_settings,
    reset_settings,
)

__all__ = [
    "DetectionConfig",
    "Settings",
    "configure",
    "get_settings",
    "reset_settings",
]
