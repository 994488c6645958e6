"""Pydantic models for API requests and responses."""

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from crashmap.models.results import CrashPoint, SummaryResult, WireModel


class SummaryRequest(BaseModel):
    """Request body for a polygon summary.

    ``polygon`` and ``filters`` are accepted loosely here; the polygon
    validator and filter builder own their validation rules.
    """

    polygon: Optional[Any] = Field(
        None, description="GeoJSON Feature or bare Polygon/MultiPolygon geometry"
    )
    filters: Optional[Any] = Field(
        None, description="Optional {dateFrom, dateTo, severity[]} filter object"
    )


class PointsRequest(SummaryRequest):
    """Request body for crash points; the polygon is optional."""

    limit: Optional[int] = Field(None, description="Maximum rows (capped server-side)")


class SummaryResponse(SummaryResult):
    """Summary result plus the dataset version label."""

    data_version: Optional[str] = None


class PointsResponse(WireModel):
    """Crash points, newest first."""

    results: List[CrashPoint]


class HealthResponse(BaseModel):
    """Response model for health checks."""

    status: str
    timestamp: datetime
    services: dict[str, str]
    data_version: Optional[str] = None
    latest_data_date: Optional[date] = None


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str
