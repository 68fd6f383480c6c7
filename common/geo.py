from __future__ import annotations

import logging
import math
from typing import Tuple

from common.types import (
    Equatorial,
    MapDescriptor,
    MapKind,
    NativeCoordinate,
    NativeRegion,
    Pixel,
    Planetary,
    UnitPoint,
    ViewportSnapshot,
)


log = logging.getLogger(__name__)

TILE_SIZE = 256


# -------------------------
# RA/Dec <-> lon/lat
# -------------------------
# Sky imagery is viewed from inside the sphere, so RA grows to the left.
def ra2long(ra: float) -> float:
    return 180.0 - ra


def long2ra(lng: float) -> float:
    return 180.0 - lng


def dec2lat(dec: float) -> float:
    return dec


def lat2dec(lat: float) -> float:
    return lat


# -------------------------
# Spherical Mercator <-> pyramid pixels
# -------------------------
def pyramid_size(max_level: int) -> float:
    """Full-resolution width (== height) of a square 256px tile pyramid."""
    return float(TILE_SIZE * (2 ** int(max_level)))


def long2x(lng: float, width: float) -> float:
    return (lng + 180.0) * (width / 360.0)


def x2long(x: float, width: float) -> float:
    return x * (360.0 / width) - 180.0


def lat2y(lat: float, width: float, height: float) -> float:
    """
    Latitude (deg) to Mercator pixel row with R = width / 2π.
    At exactly ±90° the tangent blows up: the result is ∓inf (or NaN),
    returned as-is so callers can bounds-check.
    """
    R = width / (2.0 * math.pi)
    lat_rad = math.radians(lat)
    t = math.tan(math.pi / 4.0 + lat_rad / 2.0)
    if t == 0.0:
        log.debug("Mercator singularity at lat=%s", lat)
        merc_n = -math.inf
    elif not t > 0.0:
        log.debug("Mercator undefined at lat=%s", lat)
        return math.nan
    else:
        merc_n = math.log(t)
    return (height / 2.0) - (R * merc_n)


def y2lat(y: float, width: float, height: float) -> float:
    """Inverse of lat2y: (2·atan(exp((height/2 - y)/R)) - π/2) · 180/π."""
    R = width / (2.0 * math.pi)
    try:
        merc_n = (height / 2.0 - y) / R
        lat_rad = 2.0 * math.atan(math.exp(merc_n)) - math.pi / 2.0
    except OverflowError:
        lat_rad = math.pi / 2.0
    return math.degrees(lat_rad)


# -------------------------
# Per-kind forward / inverse
# -------------------------
def equatorial_to_unit(ra: float, dec: float, max_level: int = 11) -> Tuple[float, float]:
    size = pyramid_size(max_level)
    x = long2x(ra2long(ra), size)
    y = lat2y(dec2lat(dec), size, size)
    return x / size, y / size


def unit_to_equatorial(x: float, y: float, max_level: int = 11) -> Tuple[float, float]:
    size = pyramid_size(max_level)
    ra = long2ra(x2long(x * size, size))
    dec = lat2dec(y2lat(y * size, size, size))
    return ra, dec


def pixel_to_unit(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    return x / float(width), y / float(height)


def unit_to_pixel(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    return x * float(width), y * float(height)


def planetary_to_unit(longitude: float, latitude: float) -> Tuple[float, float]:
    # Linear plate carrée, not Mercator.
    return (longitude + 180.0) / 360.0, 1.0 - (latitude + 90.0) / 180.0


def unit_to_planetary(x: float, y: float) -> Tuple[float, float]:
    return x * 360.0 - 180.0, (1.0 - y) * 180.0 - 90.0


# -------------------------
# Descriptor-level dispatch
# -------------------------
def _image_size(desc: MapDescriptor) -> Tuple[float, float]:
    if not desc.image_width or not desc.image_height:
        raise ValueError(f"map {desc.key!r} has no image size")
    return float(desc.image_width), float(desc.image_height)


def to_unit(desc: MapDescriptor, coord: NativeCoordinate) -> UnitPoint:
    """Forward transform: native coordinate of `desc` -> unit-square point."""
    if coord.kind is not desc.kind:
        raise TypeError(f"{coord.kind.value} coordinate used with {desc.kind.value} map {desc.key!r}")
    if isinstance(coord, Equatorial):
        return UnitPoint(*equatorial_to_unit(coord.ra, coord.dec, desc.max_level))
    if isinstance(coord, Pixel):
        return UnitPoint(*pixel_to_unit(coord.x, coord.y, *_image_size(desc)))
    return UnitPoint(*planetary_to_unit(coord.longitude, coord.latitude))


def from_unit(desc: MapDescriptor, point: UnitPoint) -> NativeCoordinate:
    """Inverse transform: unit-square point -> native coordinate of `desc`."""
    if desc.kind is MapKind.EQUATORIAL:
        return Equatorial(*unit_to_equatorial(point.x, point.y, desc.max_level))
    if desc.kind is MapKind.PIXEL_IMAGE:
        return Pixel(*unit_to_pixel(point.x, point.y, *_image_size(desc)))
    return Planetary(*unit_to_planetary(point.x, point.y))


def unit_rect_to_native(desc: MapDescriptor, top_left: UnitPoint, bottom_right: UnitPoint) -> NativeRegion:
    """
    Map a unit-square rectangle to the native rectangle spanned by its corners.

    For equatorial maps the mirrored RA axis means the left edge carries the
    *high* RA; from_bounds() normalizes the ordering.
    """
    a = from_unit(desc, top_left).axes
    b = from_unit(desc, bottom_right).axes
    return NativeRegion.from_bounds(desc.kind, a[0], b[0], a[1], b[1])


def snapshot_region(desc: MapDescriptor, snapshot: ViewportSnapshot) -> NativeRegion:
    """Native rectangle currently visible for a viewport snapshot."""
    return unit_rect_to_native(desc, *snapshot.corners())
