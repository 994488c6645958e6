"""Group crash points sharing a location into map markers."""
from typing import Dict, Iterable, List, Tuple

from crashmap.models.results import CrashPoint, MapCluster
from crashmap.models.severity import Severity

COORDINATE_PRECISION = 6  # ~0.1 m


def coordinate_key(point: CrashPoint) -> Tuple[str, str]:
    return (
        f"{point.lat:.{COORDINATE_PRECISION}f}",
        f"{point.lon:.{COORDINATE_PRECISION}f}",
    )


def cluster_points(points: Iterable[CrashPoint]) -> List[MapCluster]:
    """Build clusters from scratch, in first-seen order.

    Each cluster keeps every member and the label of its most severe
    member; on equal rank the first-seen label wins.
    """
    clusters: Dict[Tuple[str, str], MapCluster] = {}

    for point in points:
        key = coordinate_key(point)
        severity = Severity.from_label(point.severity)
        cluster = clusters.get(key)

        if cluster is None:
            clusters[key] = MapCluster(
                lon=point.lon,
                lat=point.lat,
                count=1,
                severity=point.severity,
                severity_rank=severity.rank,
                crashes=[point],
            )
            continue

        cluster.count += 1
        cluster.crashes.append(point)
        if severity.rank > cluster.severity_rank:
            cluster.severity = point.severity
            cluster.severity_rank = severity.rank

    return list(clusters.values())


def clusters_to_geojson(clusters: Iterable[MapCluster]) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [cluster.to_feature() for cluster in clusters],
    }
