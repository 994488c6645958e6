"""The shared "filtered set" CTE used by every crash query."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from crashmap.services.filter_builder import FilterClause
from crashmap.utils.config import settings
from crashmap.validators.polygon_validator import QueryPolygon


@dataclass(frozen=True)
class FilteredView:
    """A ``WITH ... filtered AS (...)`` prefix and the parameters it binds."""

    cte: str
    params: Dict[str, Any] = field(default_factory=dict)

    def query(self, select_sql: str) -> str:
        return f"{self.cte}\n{select_sql}"


def build_filtered_view(
    polygon: Optional[QueryPolygon],
    filter_clause: FilterClause,
    columns: str = "crashes.*",
    table: Optional[str] = None,
) -> FilteredView:
    """Compose the spatial predicate and the filter predicate into one view.

    Rows without geometry are always excluded. With no polygon the view
    spans the full dataset.
    """
    table = table or settings.query.table
    params: Dict[str, Any] = {}

    if polygon is not None:
        params["polygon"] = polygon.geojson
        cte = f"""
WITH
  query_area AS (SELECT ST_GeomFromGeoJSON(:polygon) AS geom),
  filtered AS (
    SELECT {columns}
    FROM {table} AS crashes, query_area
    WHERE crashes.geom IS NOT NULL
      AND ST_Intersects(crashes.geom, query_area.geom){filter_clause.and_clause()}
  )"""
    else:
        cte = f"""
WITH
  filtered AS (
    SELECT {columns}
    FROM {table} AS crashes
    WHERE crashes.geom IS NOT NULL{filter_clause.and_clause()}
  )"""

    params.update(filter_clause.as_dict())
    return FilteredView(cte=cte, params=params)
