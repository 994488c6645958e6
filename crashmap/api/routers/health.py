"""Health check and service information endpoints."""
import asyncio
import sys
from datetime import datetime

from fastapi import APIRouter, Depends

from crashmap import __version__
from crashmap.api.dependencies import get_meta_reader, get_query_engine
from crashmap.api.models import HealthResponse
from crashmap.exceptions import CrashMapError
from crashmap.services.data_meta import DataMetaReader
from crashmap.services.spatial_engine import SpatialQueryEngine
from crashmap.utils.config import settings
from crashmap.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    engine: SpatialQueryEngine = Depends(get_query_engine),
    meta_reader: DataMetaReader = Depends(get_meta_reader),
):
    """Report store connectivity, spatial capability and data freshness."""
    services_status = {}
    overall_healthy = True

    try:
        row_count = await _probe_store(engine)
        services_status["database"] = "healthy"
        services_status["spatial"] = "healthy"
        services_status["crashes"] = f"{row_count} rows"
    except CrashMapError as e:
        logger.warning("Store health check failed", error=e.message)
        services_status["database"] = f"error: {type(e).__name__}"
        overall_healthy = False

    data_version = meta_reader.data_version_label()
    services_status["metadata"] = "healthy" if data_version else "warning: no data version"

    status = "healthy" if overall_healthy else "degraded"
    if not overall_healthy:
        logger.warning("Health check failed", services=services_status)

    return HealthResponse(
        status=status,
        timestamp=datetime.now(),
        services=services_status,
        data_version=data_version,
        latest_data_date=meta_reader.latest_data_date(),
    )


async def _probe_store(engine: SpatialQueryEngine) -> int:
    """Open a session, load spatial support and count rows, off the event loop."""

    def _probe() -> int:
        with engine.session() as session:
            row = session.fetch_one(
                f"SELECT COUNT(*) AS row_count FROM {settings.query.table}"
            )
            return int((row or {}).get("row_count") or 0)

    return await asyncio.to_thread(_probe)


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Crash Map Query API",
        "version": __version__,
        "status": "online",
        "python_version": (
            f"{sys.version_info.major}.{sys.version_info.minor}."
            f"{sys.version_info.micro}"
        ),
        "endpoints": {
            "health": "/health",
            "summary": "/api/summary",
            "crashes": "/api/crashes",
            "clusters": "/api/crashes/clusters",
            "docs": "/docs",
            "openapi": "/openapi.json",
        },
    }
