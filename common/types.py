from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class MapKind(str, Enum):
    """Native coordinate system of a map."""
    EQUATORIAL = "equatorial"
    PIXEL_IMAGE = "image_pixels"
    PLANETARY_GEOGRAPHIC = "planetary_geographic"


class DisplayTier(str, Enum):
    DOT = "dot"
    LABELED = "labeled"


# -------------------------
# Native coordinates (tagged union)
# -------------------------
@dataclass(frozen=True, slots=True)
class Equatorial:
    """Right ascension / declination in degrees."""
    ra: float
    dec: float

    @property
    def kind(self) -> MapKind:
        return MapKind.EQUATORIAL

    @property
    def axes(self) -> Tuple[float, float]:
        return (self.ra, self.dec)

    def to_dict(self) -> Dict[str, float]:
        return {"ra": self.ra, "dec": self.dec}


@dataclass(frozen=True, slots=True)
class Pixel:
    """Full-resolution image pixel (origin top-left)."""
    x: float
    y: float

    @property
    def kind(self) -> MapKind:
        return MapKind.PIXEL_IMAGE

    @property
    def axes(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class Planetary:
    """Planetocentric longitude (-180..180) / latitude (-90..90) in degrees."""
    longitude: float
    latitude: float

    @property
    def kind(self) -> MapKind:
        return MapKind.PLANETARY_GEOGRAPHIC

    @property
    def axes(self) -> Tuple[float, float]:
        return (self.longitude, self.latitude)

    def to_dict(self) -> Dict[str, float]:
        return {"longitude": self.longitude, "latitude": self.latitude}


NativeCoordinate = Union[Equatorial, Pixel, Planetary]

_AXIS_KEYS: Dict[MapKind, Tuple[str, str]] = {
    MapKind.EQUATORIAL: ("ra", "dec"),
    MapKind.PIXEL_IMAGE: ("x", "y"),
    MapKind.PLANETARY_GEOGRAPHIC: ("longitude", "latitude"),
}

_CTORS = {
    MapKind.EQUATORIAL: Equatorial,
    MapKind.PIXEL_IMAGE: Pixel,
    MapKind.PLANETARY_GEOGRAPHIC: Planetary,
}


def axis_keys(kind: MapKind) -> Tuple[str, str]:
    return _AXIS_KEYS[kind]


def native_from_axes(kind: MapKind, a: float, b: float) -> NativeCoordinate:
    return _CTORS[kind](float(a), float(b))


def native_from_dict(kind: MapKind, data: Mapping[str, Any]) -> NativeCoordinate:
    """
    Build a coordinate of `kind` from a JSON object such as {"ra": .., "dec": ..}.
    Raises ValueError if either axis is missing or not numeric.
    """
    ka, kb = _AXIS_KEYS[kind]
    try:
        return native_from_axes(kind, float(data[ka]), float(data[kb]))
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"expected {ka}/{kb} for {kind.value} coordinate, got {dict(data)!r}") from e


# -------------------------
# Regions & viewer space
# -------------------------
@dataclass(frozen=True, slots=True)
class NativeRegion:
    """
    Axis-aligned rectangle in native space, stored as center + half extent
    (axis order follows the coordinate: ra/dec, x/y or lon/lat).
    """
    kind: MapKind
    center: Tuple[float, float]
    half_extent: Tuple[float, float]

    @classmethod
    def from_bounds(cls, kind: MapKind, lo_a: float, hi_a: float, lo_b: float, hi_b: float) -> "NativeRegion":
        lo_a, hi_a = min(lo_a, hi_a), max(lo_a, hi_a)
        lo_b, hi_b = min(lo_b, hi_b), max(lo_b, hi_b)
        return cls(
            kind=kind,
            center=(0.5 * (lo_a + hi_a), 0.5 * (lo_b + hi_b)),
            half_extent=(0.5 * (hi_a - lo_a), 0.5 * (hi_b - lo_b)),
        )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        # (lo_a, hi_a, lo_b, hi_b)
        (ca, cb), (ha, hb) = self.center, self.half_extent
        return (ca - ha, ca + ha, cb - hb, cb + hb)

    def contains(self, coord: NativeCoordinate) -> bool:
        """Strict half-width test: |c - center| < half_extent on both axes."""
        if coord.kind is not self.kind:
            return False
        a, b = coord.axes
        return abs(a - self.center[0]) < self.half_extent[0] and abs(b - self.center[1]) < self.half_extent[1]

    def to_dict(self) -> Dict[str, Any]:
        ka, kb = _AXIS_KEYS[self.kind]
        lo_a, hi_a, lo_b, hi_b = self.bounds
        return {f"{ka}_min": lo_a, f"{ka}_max": hi_a, f"{kb}_min": lo_b, f"{kb}_max": hi_b}


@dataclass(frozen=True, slots=True)
class UnitPoint:
    """Point in normalized viewer space ([0,1] x [0,1], origin top-left)."""
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class ViewportSnapshot:
    """
    Visible region of the viewer at one instant.

    Attributes:
        center: viewport center in unit-square space.
        width, height: visible extent in unit-square space.
        zoom: viewer zoom level (1.0 = whole image fits).
    """
    center: UnitPoint
    width: float
    height: float
    zoom: float

    @classmethod
    def from_bounds(cls, x: float, y: float, width: float, height: float, zoom: float) -> "ViewportSnapshot":
        """Build from a viewer bounds rectangle (top-left x/y + size)."""
        return cls(center=UnitPoint(x + width / 2.0, y + height / 2.0), width=width, height=height, zoom=zoom)

    def corners(self) -> Tuple[UnitPoint, UnitPoint]:
        """(top_left, bottom_right) of center ± extent/2."""
        hw, hh = self.width / 2.0, self.height / 2.0
        return (
            UnitPoint(self.center.x - hw, self.center.y - hh),
            UnitPoint(self.center.x + hw, self.center.y + hh),
        )

    def to_dict(self) -> Dict[str, Any]:
        tl, _ = self.corners()
        return {
            "bounds": {"x": tl.x, "y": tl.y, "width": self.width, "height": self.height},
            "center": {"x": self.center.x, "y": self.center.y},
            "zoom": self.zoom,
        }


# -------------------------
# Maps, points, overlays
# -------------------------
@dataclass(frozen=True, slots=True)
class PointOfInterest:
    name: str
    coordinate: NativeCoordinate
    description: str = ""


PointRecord = PointOfInterest


@dataclass(frozen=True)
class MapDescriptor:
    """
    Static description of one supported map. Never mutated after load.

    `bounds` is a native-space rectangle whose meaning depends on `kind`
    (ra/dec degrees, image pixels, or lon/lat degrees).
    """
    key: str
    kind: MapKind
    bounds: NativeRegion
    points_of_interest: Mapping[str, PointOfInterest] = field(default_factory=dict)
    title: str = ""
    description: str = ""
    map_type: str = ""
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    max_level: int = 11
    point_annotated: bool = False
    attribution: str = ""

    @property
    def coordinate_system(self) -> str:
        return self.kind.value

    def summary(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "type": self.map_type,
            "description": self.description,
            "coordinate_system": self.coordinate_system,
            "notable_objects": list(self.points_of_interest.keys()),
        }


@dataclass(slots=True)
class OverlayEntry:
    """
    One live overlay. `element` is whatever handle the viewer returned from
    add_overlay(); the overlay layer owns it until remove_overlay().
    """
    id: str
    coordinate: NativeCoordinate
    tier: DisplayTier
    location: UnitPoint
    label: str = ""
    element: Any = None


@dataclass(frozen=True, slots=True)
class AnnotationRecord:
    """User label as stored by the external annotation store."""
    id: str
    label: str = ""
    geometry: Mapping[str, Any] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def to_document(self) -> Dict[str, Any]:
        doc = dict(self.raw)
        doc["id"] = self.id
        doc.setdefault("label", self.label)
        if self.geometry:
            doc.setdefault("target", {"selector": dict(self.geometry)})
        return doc


@dataclass(frozen=True, slots=True)
class SearchResult:
    """
    Found-location answer from the search service.

    confidence is always normalized to [0,1]. raw_text carries the service
    body when it could not be parsed.
    """
    found: bool
    coordinate: Optional[NativeCoordinate] = None
    description: str = ""
    confidence: float = 0.0
    zoom_hint: Optional[float] = None
    raw_text: Optional[str] = None
    context_used: Any = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    analysis: str = ""
    features: Tuple[str, ...] = ()
    notable_objects: Tuple[str, ...] = ()
    scale_estimate: str = ""
    query_response: str = ""
    confidence: float = 0.0
    nearby_known_objects: Tuple[str, ...] = ()
    raw_text: Optional[str] = None
