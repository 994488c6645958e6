"""Error taxonomy shared by the query core and the HTTP boundary."""
from typing import Optional


class CrashMapError(Exception):
    """Base error carrying an HTTP-equivalent status code.

    ``public_message`` is what a client may see. For server-side failures it
    is deliberately generic; the detailed message stays in the logs.
    """

    status_code: int = 500
    default_public_message: Optional[str] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        return self.default_public_message or self.message


class InvalidPolygon(CrashMapError):
    """Client supplied a polygon payload that cannot be queried."""

    status_code = 400


class InvalidPayload(InvalidPolygon):
    """Payload missing, not an object, or a feature without geometry."""


class UnsupportedGeometryType(InvalidPolygon):
    """Geometry is neither a Polygon nor a MultiPolygon."""


class MalformedCoordinates(InvalidPolygon):
    """Coordinate nesting does not match the declared geometry type."""


class InvalidGeometry(InvalidPolygon):
    """Geometry breaks OGC validity rules (open rings, self-intersection, bad holes)."""


class SpatialCapabilityUnavailable(CrashMapError):
    """The spatial extension could not be loaded or installed for a session."""

    status_code = 500
    default_public_message = "Spatial queries are unavailable."


class QueryExecutionError(CrashMapError):
    """Wraps any failure raised by the analytical store while running a query."""

    status_code = 500
    default_public_message = "Failed to run crash query."


class RateLimited(CrashMapError):
    """Raised by boundary collaborators when a client exceeds its request window."""

    status_code = 429
    default_public_message = "Too many requests. Please slow down."
