"""Validation and normalisation of inbound query polygons."""
import json
import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Mapping

from shapely.errors import GEOSException
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity

from crashmap.exceptions import (InvalidGeometry, InvalidPayload,
                                 MalformedCoordinates, UnsupportedGeometryType)
from crashmap.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_TYPES = ("Polygon", "MultiPolygon")


@dataclass(frozen=True)
class QueryPolygon:
    """A validated Polygon/MultiPolygon feature ready for spatial queries."""

    feature: dict
    geometry: BaseGeometry = field(compare=False, repr=False)

    @property
    def geometry_type(self) -> str:
        return self.feature["geometry"]["type"]

    @property
    def geojson(self) -> str:
        """Geometry serialised as GeoJSON text, bound as a query parameter."""
        return json.dumps(self.feature["geometry"])


class PolygonValidator:
    """Validates polygon payloads from map drawings or viewport rectangles."""

    def validate(self, payload: Any) -> QueryPolygon:
        """Validate a bare geometry or a feature wrapping one.

        Args:
            payload: Decoded JSON value from the request body

        Returns:
            Normalised feature with its shapely geometry

        Raises:
            InvalidPayload: payload missing, not an object, or feature without geometry
            UnsupportedGeometryType: geometry is not a Polygon or MultiPolygon
            MalformedCoordinates: coordinates do not match the declared type
            InvalidGeometry: geometry fails OGC validity checks
        """
        if not payload or not isinstance(payload, Mapping):
            raise InvalidPayload("Polygon payload is required.")

        feature = self._to_feature(payload)
        geometry = feature["geometry"]
        geometry_type = geometry.get("type")

        if geometry_type not in SUPPORTED_TYPES:
            raise UnsupportedGeometryType(
                "Polygon geometry must be a Polygon or MultiPolygon."
            )

        coordinates = geometry.get("coordinates")
        if geometry_type == "Polygon":
            self._check_polygon_coordinates(coordinates)
        else:
            self._check_multipolygon_coordinates(coordinates)

        polygon = self._build_shape(geometry_type, coordinates)
        return QueryPolygon(
            feature={
                "type": "Feature",
                "properties": feature["properties"],
                "geometry": {"type": geometry_type, "coordinates": coordinates},
            },
            geometry=polygon,
        )

    def from_bounds(
        self, west: float, south: float, east: float, north: float
    ) -> QueryPolygon:
        """Build the query polygon for a map viewport rectangle."""
        bounds = (west, south, east, north)
        if not all(_is_number(value) for value in bounds):
            raise MalformedCoordinates("Viewport bounds must be finite numbers.")
        if west >= east or south >= north:
            raise InvalidGeometry("Viewport bounds are empty or inverted.")

        ring = [
            [west, south],
            [east, south],
            [east, north],
            [west, north],
            [west, south],
        ]
        return self.validate({"type": "Polygon", "coordinates": [ring]})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_feature(payload: Mapping) -> dict:
        if payload.get("type") == "Feature":
            geometry = payload.get("geometry")
            if not geometry or not isinstance(geometry, Mapping):
                raise InvalidPayload("Feature is missing geometry.")
            properties = payload.get("properties")
            if not isinstance(properties, Mapping):
                properties = {}
            return {"properties": dict(properties), "geometry": geometry}

        # Bare geometry payloads are wrapped as a feature
        return {"properties": {}, "geometry": payload}

    def _check_multipolygon_coordinates(self, coordinates: Any) -> None:
        if not isinstance(coordinates, list) or not coordinates:
            raise MalformedCoordinates(
                "MultiPolygon coordinates must be a non-empty array of polygons."
            )
        for polygon in coordinates:
            self._check_polygon_coordinates(polygon)

    def _check_polygon_coordinates(self, coordinates: Any) -> None:
        if not isinstance(coordinates, list) or not coordinates:
            raise MalformedCoordinates(
                "Polygon coordinates must be a non-empty array of linear rings."
            )
        for ring in coordinates:
            if not isinstance(ring, list):
                raise MalformedCoordinates("Polygon ring must be an array of positions.")
            for position in ring:
                if (
                    not isinstance(position, list)
                    or len(position) not in (2, 3)
                    or not all(_is_number(value) for value in position)
                ):
                    raise MalformedCoordinates(
                        "Each position must be an array of two or three numbers."
                    )
            if len(ring) < 4:
                raise InvalidGeometry("Polygon ring must have at least four positions.")
            if ring[0] != ring[-1]:
                raise InvalidGeometry("Polygon ring is not closed.")

    @staticmethod
    def _build_shape(geometry_type: str, coordinates: list) -> BaseGeometry:
        try:
            polygon = shape({"type": geometry_type, "coordinates": coordinates})
        except (GEOSException, ValueError, TypeError) as exc:
            raise InvalidGeometry(f"Polygon geometry is invalid: {exc}") from exc

        if polygon.is_empty:
            raise InvalidGeometry("Polygon geometry is empty.")
        if not polygon.is_valid:
            reason = explain_validity(polygon)
            logger.debug("Rejected invalid polygon", reason=reason)
            raise InvalidGeometry(f"Polygon geometry is invalid: {reason}.")
        return polygon


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


_default_validator = PolygonValidator()


def validate_polygon_feature(payload: Any) -> QueryPolygon:
    """Validate a polygon payload with the default validator."""
    return _default_validator.validate(payload)


def polygon_from_bounds(west: float, south: float, east: float, north: float) -> QueryPolygon:
    """Build a validated polygon from viewport bounds."""
    return _default_validator.from_bounds(west, south, east, north)
