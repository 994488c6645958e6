"""Polygon summary endpoint."""
from fastapi import APIRouter, Depends

from crashmap.api.dependencies import (get_meta_reader, get_polygon_validator,
                                       get_query_engine)
from crashmap.api.models import ErrorResponse, SummaryRequest, SummaryResponse
from crashmap.exceptions import CrashMapError, InvalidPayload
from crashmap.services.data_meta import DataMetaReader
from crashmap.services.spatial_engine import SpatialQueryEngine
from crashmap.services.summary_service import query_summary
from crashmap.utils.logging import get_logger
from crashmap.validators.polygon_validator import PolygonValidator

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["summary"])


@router.post(
    "/summary",
    response_model=SummaryResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def post_summary(
    request: SummaryRequest,
    engine: SpatialQueryEngine = Depends(get_query_engine),
    validator: PolygonValidator = Depends(get_polygon_validator),
    meta_reader: DataMetaReader = Depends(get_meta_reader),
) -> SummaryResponse:
    """
    Summarise crashes inside a drawn polygon or viewport.

    Returns the total, seven categorical breakdowns, participant totals and
    the latest accident date, optionally narrowed by date range and severity.
    """
    if not request.polygon:
        raise InvalidPayload("Polygon is required.")

    polygon = validator.validate(request.polygon)

    try:
        with engine.session() as session:
            summary = query_summary(session, polygon, request.filters)
    except CrashMapError as e:
        logger.error("Failed to generate summary", error=str(e))
        raise

    return SummaryResponse(
        **summary.model_dump(),
        data_version=meta_reader.data_version_label(),
    )
