"""Individual crash points for map display."""
from typing import Any, Dict, List, Mapping, Optional, Union

from crashmap.models.results import CrashPoint
from crashmap.models.severity import canonical_severity_label
from crashmap.services.filter_builder import (FilterCriteria,
                                             build_filter_clause)
from crashmap.services.filtered_view import build_filtered_view
from crashmap.services.spatial_engine import SpatialSession
from crashmap.utils.config import settings
from crashmap.utils.logging import get_logger
from crashmap.validators.polygon_validator import QueryPolygon

logger = get_logger(__name__)

# CrashPoint field -> crash table column
COUNTER_COLUMNS = {
    "total_persons": "total_persons",
    "pedestrians": "pedestrian_count",
    "cyclists": "bicyclist_count",
    "heavy_vehicles": "heavy_vehicle_count",
    "passenger_vehicles": "passenger_vehicle_count",
    "motorcycles": "motorcycle_count",
    "public_transport_vehicles": "public_transport_vehicle_count",
    "passengers": "passenger_count",
    "drivers": "driver_count",
    "pillions": "pillion_count",
    "motorcyclists": "motorcyclist_count",
    "unknown": "unknown_count",
    "ped_cyclist_5_to_12": "ped_cyclist_5_12",
    "ped_cyclist_13_to_18": "ped_cyclist_13_18",
    "old_ped_65_plus": "old_ped_65_and_over",
    "old_driver_75_plus": "old_driver_75_and_over",
    "young_driver_18_to_25": "young_driver_18_25",
    "no_of_vehicles": "no_of_vehicles",
}

_COUNTER_SELECT = ",\n  ".join(
    f"{column} AS {field_name}" for field_name, column in COUNTER_COLUMNS.items()
)

POINTS_SQL = f"""
SELECT
  accident_no,
  CAST(accident_date AS VARCHAR) AS accident_date,
  accident_time,
  severity,
  accident_type,
  dca_code_description AS dca_description,
  lon,
  lat,
  speed_zone,
  road_geometry,
  day_of_week,
  light_condition,
  lga_name,
  {_COUNTER_SELECT}
FROM filtered
ORDER BY accident_date DESC NULLS LAST, accident_no ASC
LIMIT :row_limit
"""


def effective_limit(limit: Optional[int]) -> int:
    """Clamp a requested limit into ``[1, max_points]``."""
    max_points = settings.query.max_points
    if limit is None:
        return max_points
    return min(max(int(limit), 1), max_points)


def _to_point(row: Dict[str, Any]) -> CrashPoint:
    speed_zone = row.get("speed_zone")
    return CrashPoint(
        accident_no=str(row.get("accident_no") or ""),
        accident_date=row.get("accident_date"),
        accident_time=row.get("accident_time"),
        severity=canonical_severity_label(row.get("severity")),
        accident_type=row.get("accident_type"),
        dca_description=row.get("dca_description"),
        lon=float(row["lon"]),
        lat=float(row["lat"]),
        speed_zone=int(speed_zone) if speed_zone is not None else None,
        road_geometry=row.get("road_geometry"),
        day_of_week=row.get("day_of_week"),
        light_condition=row.get("light_condition"),
        lga_name=row.get("lga_name"),
        **{field_name: int(row.get(field_name) or 0) for field_name in COUNTER_COLUMNS},
    )


def query_points(
    session: SpatialSession,
    polygon: Optional[QueryPolygon] = None,
    filters: Union[FilterCriteria, Mapping[str, Any], None] = None,
    limit: Optional[int] = None,
) -> List[CrashPoint]:
    """List crashes in the filtered set, newest first.

    Args:
        session: Open store session
        polygon: Validated polygon, or None to search the full dataset
        filters: Raw or normalised filter criteria
        limit: Requested row count; never more than the configured cap

    Returns:
        Up to ``max_points`` crash points ordered by accident date, nulls last
    """
    view = build_filtered_view(
        polygon,
        build_filter_clause(filters),
        columns="crashes.*, ST_X(crashes.geom) AS lon, ST_Y(crashes.geom) AS lat",
    )
    params = dict(view.params)
    params["row_limit"] = effective_limit(limit)

    rows = session.fetch_all(view.query(POINTS_SQL), params)
    points = [_to_point(row) for row in rows]

    logger.debug(
        "Crash points fetched",
        count=len(points),
        limit=params["row_limit"],
        spatial=polygon is not None,
    )
    return points
