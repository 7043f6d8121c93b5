"""Anomaly storage module."""

from anomaly_engine.store.interface import AnomalyStore, BaseAnomalyStore
from anomaly_engine.store.memory_store import MemoryAnomalyStore

__all__ = [
    "AnomalyStore",
    "BaseAnomalyStore",
    "MemoryAnomalyStore",
]
