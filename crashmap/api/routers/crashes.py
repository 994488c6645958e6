"""Crash point and cluster endpoints."""
from typing import Any, List

from fastapi import APIRouter, Depends

from crashmap.api.dependencies import get_polygon_validator, get_query_engine
from crashmap.api.models import ErrorResponse, PointsRequest, PointsResponse
from crashmap.exceptions import CrashMapError
from crashmap.models.results import CrashPoint
from crashmap.services.clustering import cluster_points, clusters_to_geojson
from crashmap.services.point_service import query_points
from crashmap.services.spatial_engine import SpatialQueryEngine
from crashmap.utils.logging import get_logger
from crashmap.validators.polygon_validator import PolygonValidator

logger = get_logger(__name__)
router = APIRouter(prefix="/api/crashes", tags=["crashes"])


def _fetch_points(
    request: PointsRequest,
    engine: SpatialQueryEngine,
    validator: PolygonValidator,
) -> List[CrashPoint]:
    polygon = validator.validate(request.polygon) if request.polygon else None

    try:
        with engine.session() as session:
            return query_points(session, polygon, request.filters, request.limit)
    except CrashMapError as e:
        logger.error("Failed to fetch crashes", error=str(e))
        raise


@router.post(
    "",
    response_model=PointsResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def post_crashes(
    request: PointsRequest,
    engine: SpatialQueryEngine = Depends(get_query_engine),
    validator: PolygonValidator = Depends(get_polygon_validator),
) -> PointsResponse:
    """
    List individual crashes for the map, newest first.

    Without a polygon the whole dataset is searched. At most 5000 rows are
    returned regardless of the requested limit.
    """
    return PointsResponse(results=_fetch_points(request, engine, validator))


@router.post(
    "/clusters",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def post_crash_clusters(
    request: PointsRequest,
    engine: SpatialQueryEngine = Depends(get_query_engine),
    validator: PolygonValidator = Depends(get_polygon_validator),
) -> dict[str, Any]:
    """
    Get crash markers as a GeoJSON FeatureCollection.

    Crashes at the same coordinate (6 decimal places) share one marker
    coloured by the most severe crash at that spot.
    """
    points = _fetch_points(request, engine, validator)
    return clusters_to_geojson(cluster_points(points))
