"""Pytest configuration and fixtures for the crash map query tests."""
import os
from pathlib import Path

import duckdb
import pytest

from crashmap.services.spatial_engine import SpatialQueryEngine
from crashmap.utils.config import settings
from crashmap.validators.polygon_validator import PolygonValidator

CRASH_TABLE_DDL = """
CREATE TABLE crashes (
  accident_no VARCHAR,
  accident_date DATE,
  accident_time VARCHAR,
  severity VARCHAR,
  accident_type VARCHAR,
  dca_code_description VARCHAR,
  speed_zone INTEGER,
  road_geometry VARCHAR,
  day_of_week VARCHAR,
  light_condition VARCHAR,
  lga_name VARCHAR,
  total_persons INTEGER DEFAULT 0,
  pedestrian_count INTEGER DEFAULT 0,
  bicyclist_count INTEGER DEFAULT 0,
  heavy_vehicle_count INTEGER DEFAULT 0,
  passenger_vehicle_count INTEGER DEFAULT 0,
  motorcycle_count INTEGER DEFAULT 0,
  public_transport_vehicle_count INTEGER DEFAULT 0,
  passenger_count INTEGER DEFAULT 0,
  driver_count INTEGER DEFAULT 0,
  pillion_count INTEGER DEFAULT 0,
  motorcyclist_count INTEGER DEFAULT 0,
  unknown_count INTEGER DEFAULT 0,
  ped_cyclist_5_12 INTEGER DEFAULT 0,
  ped_cyclist_13_18 INTEGER DEFAULT 0,
  old_ped_65_and_over INTEGER DEFAULT 0,
  old_driver_75_and_over INTEGER DEFAULT 0,
  young_driver_18_25 INTEGER DEFAULT 0,
  no_of_vehicles INTEGER DEFAULT 0,
  geom GEOMETRY
)
"""

# E1 and E2 fall inside SAMPLE_POLYGON, everything else lies outside it.
# E4 has no geometry, E5 has no date, E6 shares E3's location.
SAMPLE_CRASHES = [
    {
        "accident_no": "E1",
        "accident_date": "2024-01-01",
        "accident_time": "08:30:00",
        "severity": "Serious injury accident",
        "accident_type": "Collision with vehicle",
        "dca_code_description": "REAR END(VEHICLES IN SAME LANE)",
        "speed_zone": 50,
        "road_geometry": "Cross intersection",
        "day_of_week": "Monday",
        "light_condition": "Day",
        "lga_name": "MELBOURNE",
        "total_persons": 2,
        "pedestrian_count": 1,
        "driver_count": 1,
        "no_of_vehicles": 1,
        "lon": 145.0,
        "lat": -37.8,
    },
    {
        "accident_no": "E2",
        "accident_date": "2024-02-15",
        "accident_time": "21:10:00",
        "severity": "Fatal accident",
        "accident_type": "Struck pedestrian",
        "dca_code_description": "PED NEAR SIDE. PED HIT BY VEHICLE FROM THE RIGHT.",
        "speed_zone": 80,
        "road_geometry": "Not at intersection",
        "day_of_week": "Thursday",
        "light_condition": "Dark Street lights on",
        "lga_name": "PORT PHILLIP",
        "total_persons": 3,
        "pedestrian_count": 1,
        "bicyclist_count": 1,
        "heavy_vehicle_count": 1,
        "driver_count": 1,
        "no_of_vehicles": 2,
        "lon": 145.1,
        "lat": -37.9,
    },
    {
        "accident_no": "E3",
        "accident_date": "2023-12-20",
        "accident_time": "14:00:00",
        "severity": "Non injury accident",
        "accident_type": "Collision with a fixed object",
        "speed_zone": 60,
        "road_geometry": "Not at intersection",
        "day_of_week": "Wednesday",
        "light_condition": "Day",
        "lga_name": "GREATER BENDIGO",
        "total_persons": 1,
        "driver_count": 1,
        "no_of_vehicles": 1,
        "lon": 144.2,
        "lat": -36.9,
    },
    {
        "accident_no": "E4",
        "accident_date": "2024-03-01",
        "severity": "Other injury accident",
        "speed_zone": 40,
        "total_persons": 1,
        "lon": None,
        "lat": None,
    },
    {
        "accident_no": "E5",
        "accident_date": None,
        "severity": "Other injury accident",
        "speed_zone": 100,
        "total_persons": 1,
        "lon": 146.0,
        "lat": -38.0,
    },
    {
        "accident_no": "E6",
        "accident_date": "2023-11-02",
        "severity": "Fatal accident",
        "speed_zone": 60,
        "total_persons": 1,
        "lon": 144.2,
        "lat": -36.9,
    },
]

SAMPLE_POLYGON = {
    "type": "Feature",
    "properties": {"name": "inner metro"},
    "geometry": {
        "type": "Polygon",
        "coordinates": [
            [
                [144.7, -38.2],
                [145.4, -38.2],
                [145.4, -37.6],
                [144.7, -37.6],
                [144.7, -38.2],
            ]
        ],
    },
}

BULK_ROW_COUNT = 5003


def _connect_with_spatial(path: Path) -> duckdb.DuckDBPyConnection:
    extension_directory = settings.database.extension_directory
    os.makedirs(extension_directory, exist_ok=True)
    conn = duckdb.connect(str(path), config={"extension_directory": extension_directory})
    try:
        conn.execute("INSTALL spatial")
        conn.execute("LOAD spatial")
    except duckdb.Error as exc:
        conn.close()
        pytest.skip(f"DuckDB spatial extension unavailable: {exc}")
    conn.execute(CRASH_TABLE_DDL)
    return conn


def _insert_crash(conn: duckdb.DuckDBPyConnection, record: dict) -> None:
    columns = [key for key in record if key not in ("lon", "lat")]
    values = [record[key] for key in columns]
    placeholders = ["?"] * len(columns)

    columns.append("geom")
    if record.get("lon") is None:
        placeholders.append("NULL")
    else:
        placeholders.append("ST_Point(?, ?)")
        values.extend([record["lon"], record["lat"]])

    conn.execute(
        f"INSERT INTO crashes ({', '.join(columns)}) VALUES ({', '.join(placeholders)})",
        values,
    )


@pytest.fixture(scope="session")
def crash_store_path(tmp_path_factory):
    """DuckDB file holding the sample crashes."""
    path = tmp_path_factory.mktemp("store") / "crashes.duckdb"
    conn = _connect_with_spatial(path)
    try:
        for record in SAMPLE_CRASHES:
            _insert_crash(conn, record)
    finally:
        conn.close()
    return path


@pytest.fixture(scope="session")
def crash_engine(crash_store_path):
    """Read-only engine over the sample crash store."""
    engine = SpatialQueryEngine(database_path=str(crash_store_path), read_only=True)
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def bulk_engine(tmp_path_factory):
    """Read-only engine over a store with more rows than the point cap."""
    path = tmp_path_factory.mktemp("bulk") / "bulk.duckdb"
    conn = _connect_with_spatial(path)
    try:
        conn.execute(
            f"""
            INSERT INTO crashes (accident_no, accident_date, severity, total_persons, geom)
            SELECT
              'B' || CAST(i AS VARCHAR),
              DATE '2020-01-01' + CAST(i % 365 AS INTEGER),
              'Other injury accident',
              1,
              ST_Point(150.0 + i * 0.0001, -30.0)
            FROM range({BULK_ROW_COUNT}) t(i)
            """
        )
    finally:
        conn.close()

    engine = SpatialQueryEngine(database_path=str(path), read_only=True)
    yield engine
    engine.dispose()


@pytest.fixture
def sample_polygon():
    """Polygon feature covering E1 and E2 only."""
    return PolygonValidator().validate(SAMPLE_POLYGON)


@pytest.fixture
def sample_polygon_payload():
    """Raw polygon payload as a client would send it."""
    return SAMPLE_POLYGON
