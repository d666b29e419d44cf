"""Monitoring schemas."""
from pydantic import BaseModel
from typing import Dict


class MetricsSnapshot(BaseModel):
    """Counters and histogram summaries recorded by the running app."""

    counters: Dict[str, float]
    histograms: Dict[str, Dict[str, float]]


class HealthStatus(BaseModel):
    status: str
    scheduler_running: bool
