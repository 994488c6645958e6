"""Tests for FastAPI endpoints."""
import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from crashmap.api.dependencies import get_meta_reader, get_query_engine
from crashmap.api.main import app
from crashmap.exceptions import (QueryExecutionError,
                                 SpatialCapabilityUnavailable)
from crashmap.services.data_meta import DataMetaReader


@pytest.fixture
def meta_reader(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text(json.dumps({"dataVersion": "2024-02-15"}), encoding="utf-8")
    return DataMetaReader(meta_path=str(path))


@pytest.fixture
def override_engine(meta_reader):
    """Install an engine (real or stub) for the duration of a test."""

    def install(engine):
        app.dependency_overrides[get_query_engine] = lambda: engine
        app.dependency_overrides[get_meta_reader] = lambda: meta_reader
        return TestClient(app)

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def store_client(override_engine, crash_engine):
    return override_engine(crash_engine)


@pytest.fixture
def stub_engine():
    return MagicMock()


@pytest.fixture
def stub_client(override_engine, stub_engine):
    return override_engine(stub_engine)


class TestInfoEndpoints:
    """Test root and health endpoints."""

    def test_root_endpoint(self, stub_client):
        response = stub_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Crash Map Query API"
        assert data["version"] == "1.0.0"
        assert data["status"] == "online"
        assert data["endpoints"]["summary"] == "/api/summary"

    def test_health_endpoint_success(self, store_client):
        response = store_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["database"] == "healthy"
        assert data["services"]["spatial"] == "healthy"
        assert data["services"]["crashes"] == "6 rows"
        assert data["data_version"] == "2024-02-15"
        assert data["latest_data_date"] == "2024-02-15"

    def test_health_endpoint_degraded(self, stub_client, stub_engine):
        stub_engine.session.side_effect = QueryExecutionError("cannot open store")

        response = stub_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["services"]["database"] == "error: QueryExecutionError"


class TestSummaryEndpoint:
    """Test POST /api/summary."""

    def test_summary(self, store_client, sample_polygon_payload):
        response = store_client.post("/api/summary", json={"polygon": sample_polygon_payload})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["bySeverity"] == [
            {"bucket": "Fatal accident", "count": 1},
            {"bucket": "Serious injury accident", "count": 1},
        ]
        assert data["totals"] == {
            "persons": 5,
            "pedestrians": 2,
            "cyclists": 1,
            "heavyVehicles": 1,
        }
        assert data["latestAccidentDate"] == "2024-02-15"
        assert data["dataVersion"] == "2024-02-15"
        for key in ("byType", "bySpeedZone", "byRoadGeometry", "byDayOfWeek", "byLightCondition"):
            assert key in data

    def test_summary_with_filters(self, store_client, sample_polygon_payload):
        response = store_client.post(
            "/api/summary",
            json={
                "polygon": sample_polygon_payload,
                "filters": {"dateFrom": "2024-01-02", "severity": []},
            },
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_bare_geometry_accepted(self, store_client, sample_polygon_payload):
        response = store_client.post(
            "/api/summary", json={"polygon": sample_polygon_payload["geometry"]}
        )
        assert response.json()["total"] == 2

    def test_junk_filters_ignored(self, store_client, sample_polygon_payload):
        response = store_client.post(
            "/api/summary", json={"polygon": sample_polygon_payload, "filters": "junk"}
        )
        assert response.status_code == 200
        assert response.json()["total"] == 2

    @pytest.mark.parametrize(
        "body,message",
        [
            ({}, "Polygon is required."),
            ({"polygon": None}, "Polygon is required."),
            ({"polygon": "abc"}, "Polygon payload is required."),
            (
                {"polygon": {"type": "Point", "coordinates": [145.0, -37.8]}},
                "Polygon geometry must be a Polygon or MultiPolygon.",
            ),
            (
                {"polygon": {"type": "Feature", "properties": {}, "geometry": None}},
                "Feature is missing geometry.",
            ),
        ],
    )
    def test_invalid_polygon(self, stub_client, stub_engine, body, message):
        response = stub_client.post("/api/summary", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": message}
        stub_engine.session.assert_not_called()

    def test_self_intersecting_polygon(self, stub_client, stub_engine):
        bowtie = [[0.0, 0.0], [1.0, 1.0], [1.0, 0.0], [0.0, 1.0], [0.0, 0.0]]
        response = stub_client.post(
            "/api/summary", json={"polygon": {"type": "Polygon", "coordinates": [bowtie]}}
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Polygon geometry is invalid")
        stub_engine.session.assert_not_called()

    def test_invalid_json(self, stub_client):
        response = stub_client.post(
            "/api/summary",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload."}

    def test_non_object_body(self, stub_client):
        response = stub_client.post("/api/summary", json=[1, 2, 3])

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request payload."}

    def test_store_failure_is_generic(self, stub_client, stub_engine, sample_polygon_payload):
        stub_engine.session.side_effect = QueryExecutionError("Catalog Error: table crashes")

        response = stub_client.post("/api/summary", json={"polygon": sample_polygon_payload})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to run crash query."}

    def test_spatial_unavailable(self, stub_client, stub_engine, sample_polygon_payload):
        stub_engine.session.side_effect = SpatialCapabilityUnavailable("no network")

        response = stub_client.post("/api/summary", json={"polygon": sample_polygon_payload})

        assert response.status_code == 500
        assert response.json() == {"error": "Spatial queries are unavailable."}


class TestCrashesEndpoints:
    """Test POST /api/crashes and /api/crashes/clusters."""

    def test_points_without_polygon(self, store_client):
        response = store_client.post("/api/crashes", json={})

        assert response.status_code == 200
        results = response.json()["results"]
        assert [row["accidentNo"] for row in results] == ["E2", "E1", "E3", "E6", "E5"]
        assert results[0]["speedZone"] == 80
        assert results[0]["dcaDescription"].startswith("PED NEAR SIDE")

    def test_points_with_polygon_and_limit(self, store_client, sample_polygon_payload):
        response = store_client.post(
            "/api/crashes", json={"polygon": sample_polygon_payload, "limit": 1}
        )

        assert response.status_code == 200
        assert [row["accidentNo"] for row in response.json()["results"]] == ["E2"]

    def test_points_invalid_limit(self, stub_client):
        response = stub_client.post("/api/crashes", json={"limit": "many"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request payload."}

    def test_points_invalid_polygon(self, stub_client, stub_engine):
        response = stub_client.post(
            "/api/crashes", json={"polygon": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}}
        )

        assert response.status_code == 400
        stub_engine.session.assert_not_called()

    def test_clusters(self, store_client):
        response = store_client.post("/api/crashes/clusters", json={})

        assert response.status_code == 200
        collection = response.json()
        assert collection["type"] == "FeatureCollection"
        assert [feature["properties"]["count"] for feature in collection["features"]] == [1, 1, 2, 1]

        shared = collection["features"][2]
        assert shared["geometry"]["coordinates"] == pytest.approx([144.2, -36.9])
        assert shared["properties"]["severity"] == "Fatal accident"
        assert shared["properties"]["severityRank"] == 4
        assert shared["properties"]["accidentNo"] == "E3"
        assert [crash["accidentNo"] for crash in shared["properties"]["crashes"]] == ["E3", "E6"]

    def test_clusters_with_severity_filter(self, store_client):
        response = store_client.post(
            "/api/crashes/clusters", json={"filters": {"severity": ["Non injury accident"]}}
        )

        features = response.json()["features"]
        assert len(features) == 1
        assert features[0]["properties"]["severity"] == "Non injury accident"
        assert features[0]["properties"]["severityRank"] == 0
