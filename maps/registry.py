from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from common.types import (
    MapDescriptor,
    MapKind,
    NativeRegion,
    PointOfInterest,
    axis_keys,
    native_from_dict,
)
from maps.catalog import BUILTIN_MAPS


_KIND_ALIASES: Dict[str, MapKind] = {
    "equatorial": MapKind.EQUATORIAL,
    "image_pixels": MapKind.PIXEL_IMAGE,
    "pixel": MapKind.PIXEL_IMAGE,
    "planetary_geographic": MapKind.PLANETARY_GEOGRAPHIC,
    "mars_geographic": MapKind.PLANETARY_GEOGRAPHIC,
    "geographic": MapKind.PLANETARY_GEOGRAPHIC,
}


def _normalize_key(key: str) -> str:
    return str(key).strip().lower()


def descriptor_from_dict(key: str, info: Mapping[str, Any]) -> MapDescriptor:
    """
    Build a MapDescriptor from the catalogue schema:
      coordinate_system, bounds{axis: {min,max}}, notable_objects{name: {axes..., description}}
    Raises ValueError on an unknown coordinate system or malformed bounds.
    """
    cs = str(info.get("coordinate_system", "")).lower()
    kind = _KIND_ALIASES.get(cs)
    if kind is None:
        raise ValueError(f"map {key!r}: unsupported coordinate_system {cs!r}")

    ka, kb = axis_keys(kind)
    try:
        b = info["bounds"]
        bounds = NativeRegion.from_bounds(
            kind,
            float(b[ka]["min"]), float(b[ka]["max"]),
            float(b[kb]["min"]), float(b[kb]["max"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"map {key!r}: bounds need {ka}/{kb} min/max") from e

    pois: Dict[str, PointOfInterest] = {}
    for name, obj in (info.get("notable_objects") or {}).items():
        pois[str(name)] = PointOfInterest(
            name=str(name),
            coordinate=native_from_dict(kind, obj),
            description=str(obj.get("description", "")),
        )

    width = height = None
    if kind is MapKind.PIXEL_IMAGE:
        width, height = int(b[ka]["max"]), int(b[kb]["max"])

    return MapDescriptor(
        key=_normalize_key(key),
        kind=kind,
        bounds=bounds,
        points_of_interest=pois,
        title=str(info.get("title", key)),
        description=str(info.get("description", "")),
        map_type=str(info.get("type", "")),
        image_width=width,
        image_height=height,
        max_level=int(info.get("max_level", 11)),
        point_annotated=bool(info.get("point_annotated", False)),
        attribution=str(info.get("attribution", "")),
    )


class MapRegistry:
    """
    Read-only lookup of supported maps. All calls are synchronous and
    side-effect free; unknown keys yield None / empty results, never raise.
    """

    def __init__(self, descriptors: Iterable[MapDescriptor] = ()):
        self._maps: Dict[str, MapDescriptor] = {}
        for d in descriptors:
            self._maps[_normalize_key(d.key)] = d

    # -------- constructors --------

    @classmethod
    def default(cls) -> "MapRegistry":
        return cls(descriptor_from_dict(k, v) for k, v in BUILTIN_MAPS.items())

    @classmethod
    def from_yaml(cls, path: str, *, include_builtin: bool = True) -> "MapRegistry":
        """
        Load descriptors from YAML ({"maps": {key: {...}}} or a bare mapping).
        Entries with a built-in key replace the built-in one.
        """
        with Path(path).open("r") as f:
            doc = yaml.safe_load(f) or {}
        entries = doc.get("maps", doc) if isinstance(doc, Mapping) else {}
        merged: Dict[str, Mapping[str, Any]] = dict(BUILTIN_MAPS) if include_builtin else {}
        for k, v in entries.items():
            merged[_normalize_key(k)] = v
        return cls(descriptor_from_dict(k, v) for k, v in merged.items())

    # -------- public API --------

    def describe(self, map_key: str) -> Optional[MapDescriptor]:
        return self._maps.get(_normalize_key(map_key))

    def list_maps(self) -> List[Tuple[str, MapDescriptor]]:
        return list(self._maps.items())

    def points_near(self, map_key: str, region: NativeRegion) -> List[PointOfInterest]:
        desc = self.describe(map_key)
        if desc is None:
            return []
        return [p for p in desc.points_of_interest.values() if region.contains(p.coordinate)]

    def summaries(self) -> List[Dict[str, Any]]:
        return [d.summary() for d in self._maps.values()]

    def __contains__(self, map_key: object) -> bool:
        return isinstance(map_key, str) and _normalize_key(map_key) in self._maps

    def __len__(self) -> int:
        return len(self._maps)
