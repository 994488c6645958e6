"""FastAPI dependencies for the crash map API."""

from crashmap.services.data_meta import DataMetaReader, get_data_meta_reader
from crashmap.services.spatial_engine import SpatialQueryEngine, get_engine
from crashmap.validators.polygon_validator import PolygonValidator


def get_query_engine() -> SpatialQueryEngine:
    """Dependency to provide the store engine.

    Routes open a scoped session from it only after request validation, so
    bad payloads never touch the store.
    """
    return get_engine()


def get_polygon_validator() -> PolygonValidator:
    """Dependency to provide polygon validator instance."""
    return PolygonValidator()


def get_meta_reader() -> DataMetaReader:
    """Dependency to provide the dataset metadata reader."""
    return get_data_meta_reader()
