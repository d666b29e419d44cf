"""Monitoring endpoints."""
from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST

from courtbook.core.metrics import MetricsRecorder, get_metrics
from courtbook.schemas.monitoring import MetricsSnapshot

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get("/metrics", response_model=MetricsSnapshot)
async def get_metrics_snapshot(
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """
    Get request timings and booking counters recorded by this process.

    Args:
        metrics: Metrics recorder

    Returns:
        Counters and histogram summaries
    """
    return metrics.snapshot()


@router.get("/metrics/prometheus")
async def get_metrics_exposition(
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """Same metrics in the Prometheus text format, for scraping."""
    return Response(content=metrics.exposition(), media_type=CONTENT_TYPE_LATEST)
