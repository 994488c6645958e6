"""Input validation modules."""

from .polygon_validator import (PolygonValidator, QueryPolygon,
                                polygon_from_bounds, validate_polygon_feature)

__all__ = [
    "PolygonValidator",
    "QueryPolygon",
    "polygon_from_bounds",
    "validate_polygon_feature",
]
