"""Aggregate statistics for the crashes inside a query polygon."""
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Union

from crashmap.exceptions import InvalidPayload
from crashmap.models.results import SummaryBucket, SummaryResult, SummaryTotals
from crashmap.models.severity import UNKNOWN_LABEL, canonical_severity_label
from crashmap.services.filter_builder import (FilterCriteria,
                                             build_filter_clause)
from crashmap.services.filtered_view import FilteredView, build_filtered_view
from crashmap.services.spatial_engine import SpatialSession
from crashmap.utils.logging import get_logger
from crashmap.validators.polygon_validator import QueryPolygon

logger = get_logger(__name__)

FilterInput = Union[FilterCriteria, Mapping[str, Any], None]

# Result field -> crash table column
BREAKDOWN_COLUMNS = {
    "by_severity": "severity",
    "by_type": "accident_type",
    "by_speed_zone": "speed_zone",
    "by_road_geometry": "road_geometry",
    "by_day_of_week": "day_of_week",
    "by_light_condition": "light_condition",
}

TOTALS_SQL = """
SELECT
  COALESCE(SUM(total_persons), 0) AS persons,
  COALESCE(SUM(pedestrian_count), 0) AS pedestrians,
  COALESCE(SUM(bicyclist_count), 0) AS cyclists,
  COALESCE(SUM(heavy_vehicle_count), 0) AS heavy_vehicles
FROM filtered
"""


def _breakdown_sql(column: str) -> str:
    # Ties are ordered by label so repeated requests return identical lists
    return f"""
SELECT
  COALESCE(CAST({column} AS VARCHAR), '{UNKNOWN_LABEL}') AS bucket,
  COUNT(*) AS bucket_count
FROM filtered
GROUP BY 1
ORDER BY bucket_count DESC, bucket ASC
"""


def _to_buckets(rows: List[Dict[str, Any]]) -> List[SummaryBucket]:
    return [
        SummaryBucket(bucket=str(row["bucket"]), count=int(row["bucket_count"]))
        for row in rows
    ]


def _canonical_severity_buckets(rows: List[Dict[str, Any]]) -> List[SummaryBucket]:
    """Merge alias spellings of a severity into its canonical bucket."""
    counts: Counter = Counter()
    for row in rows:
        counts[canonical_severity_label(str(row["bucket"]))] += int(row["bucket_count"])
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [SummaryBucket(bucket=label, count=count) for label, count in ordered]


def query_summary(
    session: SpatialSession,
    polygon: Optional[QueryPolygon],
    filters: FilterInput = None,
) -> SummaryResult:
    """Compute the full summary for a validated polygon.

    All queries run sequentially on one session against the same filtered
    view. Any failure aborts the whole summary.

    Args:
        session: Open store session
        polygon: Validated ``QueryPolygon``
        filters: Raw or normalised filter criteria

    Returns:
        Summary with zero totals and empty breakdowns when nothing matches

    Raises:
        InvalidPayload: No polygon given
        SpatialCapabilityUnavailable: Spatial extension cannot be loaded
        QueryExecutionError: Any store failure
    """
    if polygon is None:
        raise InvalidPayload("Polygon is required.")

    view: FilteredView = build_filtered_view(polygon, build_filter_clause(filters))

    total_row = session.fetch_one(
        view.query("SELECT COUNT(*) AS total FROM filtered"), view.params
    )

    breakdowns: Dict[str, List[SummaryBucket]] = {}
    for field_name, column in BREAKDOWN_COLUMNS.items():
        rows = session.fetch_all(view.query(_breakdown_sql(column)), view.params)
        if field_name == "by_severity":
            breakdowns[field_name] = _canonical_severity_buckets(rows)
        else:
            breakdowns[field_name] = _to_buckets(rows)

    totals_row = session.fetch_one(view.query(TOTALS_SQL), view.params) or {}
    latest_row = session.fetch_one(
        view.query(
            "SELECT CAST(MAX(accident_date) AS VARCHAR) AS latest FROM filtered"
        ),
        view.params,
    ) or {}

    summary = SummaryResult(
        total=int((total_row or {}).get("total") or 0),
        totals=SummaryTotals(
            persons=int(totals_row.get("persons") or 0),
            pedestrians=int(totals_row.get("pedestrians") or 0),
            cyclists=int(totals_row.get("cyclists") or 0),
            heavy_vehicles=int(totals_row.get("heavy_vehicles") or 0),
        ),
        latest_accident_date=latest_row.get("latest"),
        **breakdowns,
    )

    logger.debug(
        "Summary computed",
        total=summary.total,
        geometry_type=polygon.geometry_type,
    )
    return summary
