"""CLI for running crash map queries offline against the store."""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from crashmap.exceptions import CrashMapError, InvalidPayload
from crashmap.services.clustering import cluster_points, clusters_to_geojson
from crashmap.services.point_service import query_points
from crashmap.services.spatial_engine import SpatialQueryEngine
from crashmap.services.summary_service import query_summary
from crashmap.utils.logging import get_logger, setup_logging
from crashmap.validators.polygon_validator import (PolygonValidator,
                                                   QueryPolygon)

logger = get_logger(__name__)


def _parse_date(value: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:  # pragma: no cover - argparse handles error path
        raise argparse.ArgumentTypeError("Dates must be YYYY-MM-DD") from exc
    return value


def _parse_bbox(value: str) -> List[float]:
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("Bounding box must be WEST,SOUTH,EAST,NORTH")
    try:
        return [float(part) for part in parts]
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Bounding box values must be numbers") from exc


def _load_polygon(args: argparse.Namespace, validator: PolygonValidator) -> Optional[QueryPolygon]:
    if args.bbox:
        return validator.from_bounds(*args.bbox)
    if args.polygon:
        try:
            payload = json.loads(Path(args.polygon).read_text(encoding="utf-8"))
        except OSError as exc:
            raise InvalidPayload(f"Polygon file could not be read: {exc}") from exc
        except ValueError as exc:
            raise InvalidPayload(f"Polygon file is not valid JSON: {exc}") from exc
        return validator.validate(payload)
    return None


def _filters_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "dateFrom": args.date_from,
        "dateTo": args.date_to,
        "severity": args.severity or [],
    }


def run_command(args: argparse.Namespace, engine: SpatialQueryEngine) -> Any:
    """Execute one subcommand on a single shared session."""
    polygon = _load_polygon(args, PolygonValidator())
    filters = _filters_from_args(args)

    with engine.session() as session:
        if args.command == "summary":
            if polygon is None:
                raise InvalidPayload("summary requires --polygon or --bbox")
            return query_summary(session, polygon, filters).model_dump(by_alias=True)

        points = query_points(session, polygon, filters, args.limit)
        if args.command == "points":
            return {"results": [point.model_dump(by_alias=True) for point in points]}
        return clusters_to_geojson(cluster_points(points))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crash map query CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    base_parser = argparse.ArgumentParser(add_help=False)
    area = base_parser.add_mutually_exclusive_group()
    area.add_argument(
        "--polygon",
        help="Path to a GeoJSON Polygon/MultiPolygon feature or geometry",
    )
    area.add_argument(
        "--bbox",
        type=_parse_bbox,
        help="Viewport rectangle as WEST,SOUTH,EAST,NORTH",
    )
    base_parser.add_argument(
        "--date-from",
        type=_parse_date,
        help="Inclusive start date (YYYY-MM-DD)",
    )
    base_parser.add_argument(
        "--date-to",
        type=_parse_date,
        help="Inclusive end date (YYYY-MM-DD)",
    )
    base_parser.add_argument(
        "--severity",
        action="append",
        help="Severity label to include (repeatable)",
    )
    base_parser.add_argument(
        "--database",
        help="Path to the DuckDB crash store (default: settings)",
    )

    subparsers.add_parser(
        "summary",
        parents=[base_parser],
        help="Aggregate statistics for a polygon",
    )

    for name, help_text in (
        ("points", "Crash points, newest first"),
        ("clusters", "Crash points grouped into map markers (GeoJSON)"),
    ):
        command = subparsers.add_parser(name, parents=[base_parser], help=help_text)
        command.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of crashes (capped at 5000)",
        )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "limit"):
        args.limit = None

    # stdout carries the JSON result
    setup_logging("cli", stream=sys.stderr)
    engine = SpatialQueryEngine(database_path=args.database)

    try:
        result = run_command(args, engine)
    except CrashMapError as e:
        logger.error("Query failed", command=args.command, error=e.message)
        return 1
    finally:
        engine.dispose()

    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
