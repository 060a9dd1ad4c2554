"""Data model shared by the load, resolve and build layers."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class AreaKey(str, Enum):
    """Canonical cultural or geographic area. AREA0 is the umbrella area."""

    AREA0 = "area0"
    AREA1 = "area1"
    AREA2 = "area2"
    AREA3 = "area3"
    AREA4 = "area4"
    AREA5 = "area5"


# Legacy short codes → canonical keys. Canonical values pass through unchanged.
LEGACY_AREA_CODES: dict[str, AreaKey] = {
    "ainu1": AreaKey.AREA1,
    "ainu2": AreaKey.AREA2,
    "ainu3": AreaKey.AREA3,
    "ainu4": AreaKey.AREA4,
    "ainu5": AreaKey.AREA5,
    **{key.value: key for key in AreaKey},
}

LineSpec = tuple[str, ...]  # 1 id = single star, 2 = pair, 3+ = polyline
Point = tuple[float, float]  # (lon, lat) in the planar domain
Segment = tuple[Point, Point]


@dataclass(frozen=True)
class StarPosition:
    """Resolved equatorial position of one catalog star."""

    id: str  # Catalog identifier ("hip17702")
    ra: float  # Right ascension (degrees, [0, 360))
    dec: float  # Declination (degrees, [-90, 90])
    name: str | None = None  # Display name from the bundled table, if any


@dataclass(frozen=True)
class FolkloreEntry:
    """One folklore star grouping with per-area display text."""

    key: str | None  # Stable code; may be absent in hand-written data
    lines: tuple[LineSpec, ...]
    area_membership: frozenset[AreaKey]
    names: Mapping[AreaKey, str] = field(default_factory=dict)
    descriptions: Mapping[AreaKey, str] = field(default_factory=dict)
    name: str | None = None  # Area-independent name (membership-list schema)
    description: str | None = None  # Area-independent description
    label_position: tuple[float, float] | None = None  # Explicit (ra, dec) anchor

    def display_name(self, area: AreaKey) -> str | None:
        if area not in self.area_membership:
            return None
        return self.names.get(area) or self.name

    def display_description(self, area: AreaKey) -> str | None:
        if area not in self.area_membership:
            return None
        return self.descriptions.get(area) or self.description


@dataclass(frozen=True)
class LocalityRecord:
    """A municipality with the folklore areas it belongs to."""

    name: str
    area_keys: frozenset[AreaKey]  # Never empty; {AREA0} when unknown
    lat: float | None = None
    lon: float | None = None  # East longitude (degrees)
    region_label: str | None = None  # Intermediate region, e.g. forecast district
    bureau_label: str | None = None


@dataclass(frozen=True)
class Geoposition:
    """A device position fix."""

    lat: float
    lon: float


@dataclass(frozen=True)
class SelectionState:
    """The user's current selection. Replaced, never mutated, on change."""

    locality: LocalityRecord
    area_keys: frozenset[AreaKey]
    geoposition: Geoposition | None = None


@dataclass(frozen=True)
class RenderFeature:
    """Line geometry and label for one folklore entry, ready for the renderer."""

    id: str
    name: str
    description: str
    segments: tuple[Segment, ...]
    label_position: Point
    distinct_point_count: int

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "lineSegments": [[list(a), list(b)] for a, b in self.segments],
            "labelPosition": list(self.label_position),
            "distinctPointCount": self.distinct_point_count,
        }


@dataclass(frozen=True)
class CenteringDirective:
    """Sky-view centre for "now, here" in both renderer conventions."""

    skyview_center: tuple[float, float]  # (ra [0, 360), dec)
    rotate_center: float  # Longitude in (-180, 180]


@dataclass(frozen=True)
class SkyOverlay:
    """The sole output of a rebuild. Fully replaces the previous overlay."""

    state: SelectionState
    features: tuple[RenderFeature, ...]
    centering: CenteringDirective
