"""Result shapes produced by the summary, point and clustering services.

Fields are snake_case in Python and camelCase on the wire.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SummaryBucket(WireModel):
    """A single {label, count} pair in a categorical breakdown."""

    bucket: str
    count: int


class SummaryTotals(WireModel):
    """Participant totals across the filtered set."""

    persons: int = 0
    pedestrians: int = 0
    cyclists: int = 0
    heavy_vehicles: int = 0


class SummaryResult(WireModel):
    """Aggregate statistics for one polygon and filter combination."""

    total: int = 0
    by_severity: List[SummaryBucket] = Field(default_factory=list)
    by_type: List[SummaryBucket] = Field(default_factory=list)
    by_speed_zone: List[SummaryBucket] = Field(default_factory=list)
    by_road_geometry: List[SummaryBucket] = Field(default_factory=list)
    by_day_of_week: List[SummaryBucket] = Field(default_factory=list)
    by_light_condition: List[SummaryBucket] = Field(default_factory=list)
    totals: SummaryTotals = Field(default_factory=SummaryTotals)
    latest_accident_date: Optional[str] = None


class CrashPoint(WireModel):
    """One crash projected for map display."""

    accident_no: str
    accident_date: Optional[str] = None
    accident_time: Optional[str] = None
    severity: Optional[str] = None
    accident_type: Optional[str] = None
    dca_description: Optional[str] = None
    lon: float
    lat: float
    speed_zone: Optional[int] = None
    road_geometry: Optional[str] = None
    day_of_week: Optional[str] = None
    light_condition: Optional[str] = None
    lga_name: Optional[str] = None

    total_persons: int = 0
    pedestrians: int = 0
    cyclists: int = 0
    heavy_vehicles: int = 0
    passenger_vehicles: int = 0
    motorcycles: int = 0
    public_transport_vehicles: int = 0
    passengers: int = 0
    drivers: int = 0
    pillions: int = 0
    motorcyclists: int = 0
    unknown: int = 0
    ped_cyclist_5_to_12: int = 0
    ped_cyclist_13_to_18: int = 0
    old_ped_65_plus: int = 0
    old_driver_75_plus: int = 0
    young_driver_18_to_25: int = 0
    no_of_vehicles: int = 0


class MapCluster(WireModel):
    """Co-located crash points rendered as one marker."""

    lon: float
    lat: float
    count: int
    severity: Optional[str] = None
    severity_rank: int = 0
    crashes: List[CrashPoint] = Field(default_factory=list)

    def to_feature(self) -> dict:
        """Render as a GeoJSON point feature for the map layer."""
        first = self.crashes[0] if self.crashes else None
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [self.lon, self.lat]},
            "properties": {
                "count": self.count,
                "severity": self.severity,
                "severityRank": self.severity_rank,
                "crashes": [crash.model_dump(by_alias=True) for crash in self.crashes],
                "accidentNo": first.accident_no if first else None,
                "accidentDate": first.accident_date if first else None,
            },
        }
