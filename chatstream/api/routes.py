"""Hardware metrics endpoint for polling dashboards."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from chatstream.hardware.cache import MetricsCache, get_metrics_cache
from chatstream.models.schemas import HardwareMetricsSnapshot, MetricsErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get(
    "/gpu-metrics",
    response_model=HardwareMetricsSnapshot,
    responses={500: {"model": MetricsErrorResponse}},
)
async def gpu_metrics(cache: MetricsCache = Depends(get_metrics_cache)):
    """Return the current hardware metrics snapshot.

    Served from the shared metrics cache, so polls within the freshness
    window do not re-run the platform probe.

    Returns:
        HardwareMetricsSnapshot serialized with camelCase field names.

    Raises:
        500: Structured error body if the cache fails unexpectedly.
    """
    try:
        return await cache.get()
    except Exception as e:
        logger.error(f"Error in GPU metrics endpoint: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=MetricsErrorResponse(
                error="Failed to retrieve GPU metrics",
                message=str(e),
            ).model_dump(),
        )
