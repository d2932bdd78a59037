import math
from dataclasses import dataclass, field
from datetime import datetime

from trackmap.timepoint import EPOCH


@dataclass
class TrackPoint:
    latitude: float  # radians
    longitude: float  # radians
    elevation: float = 0.0  # meters
    timept: datetime = EPOCH
    elapsed: float = 0.0  # seconds since previous point
    elapsed_total: float = 0.0
    distance_planar: float = 0.0  # meters, surface only
    distance_planar_total: float = 0.0
    distance: float = 0.0  # meters, including elevation change
    distance_total: float = 0.0


@dataclass
class MapVertex:
    longitude: float  # radians
    latitude: float  # radians
    tags: dict[str, str] = field(default_factory=dict)
    referenced: bool = False  # import-time bookkeeping only


@dataclass
class MapSegment:
    vertex_ids: list[int] = field(default_factory=list)
    is_area: bool = False
    tags: dict[str, str] = field(default_factory=dict)
    referenced: bool = False


@dataclass
class MapMultiSegment:
    vertex_ids: list[int] = field(default_factory=list)
    segment_inner_ids: list[int] = field(default_factory=list)
    segment_ids: list[int] = field(default_factory=list)  # outer and role-less members
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class BoundingBox:
    """Longitude/latitude box in radians."""
    min_lon: float = math.inf
    max_lon: float = -math.inf
    min_lat: float = math.inf
    max_lat: float = -math.inf

    @classmethod
    def from_degrees(cls, min_lon: float, max_lon: float, min_lat: float, max_lat: float) -> "BoundingBox":
        return cls(
            math.radians(min_lon), math.radians(max_lon),
            math.radians(min_lat), math.radians(max_lat),
        )

    def to_degrees(self) -> tuple[float, float, float, float]:
        return (
            math.degrees(self.min_lon), math.degrees(self.max_lon),
            math.degrees(self.min_lat), math.degrees(self.max_lat),
        )

    def is_empty(self) -> bool:
        return self.min_lon > self.max_lon or self.min_lat > self.max_lat

    def is_valid(self) -> bool:
        """True for a non-empty box within [-pi, pi] x [-pi/2, pi/2]."""
        if self.is_empty():
            return False
        return (
            -math.pi <= self.min_lon <= math.pi
            and -math.pi <= self.max_lon <= math.pi
            and -math.pi / 2 <= self.min_lat <= math.pi / 2
            and -math.pi / 2 <= self.max_lat <= math.pi / 2
        )

    def contains_point(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def contains(self, other: "BoundingBox") -> bool:
        return (
            self.min_lon <= other.min_lon and other.max_lon <= self.max_lon
            and self.min_lat <= other.min_lat and other.max_lat <= self.max_lat
        )

    def extend(self, lon: float, lat: float) -> None:
        self.min_lon = min(self.min_lon, lon)
        self.max_lon = max(self.max_lon, lon)
        self.min_lat = min(self.min_lat, lat)
        self.max_lat = max(self.max_lat, lat)

    def widened(self, fraction: float) -> "BoundingBox":
        """Return a copy grown on each side by fraction of its extent."""
        dlon = (self.max_lon - self.min_lon) * fraction
        dlat = (self.max_lat - self.min_lat) * fraction
        return BoundingBox(
            self.min_lon - dlon, self.max_lon + dlon,
            self.min_lat - dlat, self.max_lat + dlat,
        )


# Raw OSM elements as produced by the XML and PBF readers

@dataclass
class OsmNode:
    id: int
    longitude: float  # radians
    latitude: float  # radians
    tags: dict[str, str] = field(default_factory=dict)
    visible: bool = True


@dataclass
class OsmWay:
    id: int
    refs: list[int] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    visible: bool = True


@dataclass
class OsmMember:
    type: str  # "node", "way" or "relation"
    ref: int
    role: str = ""


@dataclass
class OsmRelation:
    id: int
    members: list[OsmMember] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    visible: bool = True


@dataclass
class OsmHeader:
    version: str = ""
    generator: str = ""
    bounds: list[BoundingBox] = field(default_factory=list)
