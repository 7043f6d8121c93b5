"""Statistical anomaly detection over request traces."""

__version__ = "0.1.0"
