"""
Resolve a named object (or raw native coordinates) on a map to viewer
unit-square coordinates, and list known objects near it.

Examples:
  python -m maps.locate --map mars --name "olympus mons"
  python -m maps.locate --map unwise --coord 83.8 -5.4 --field 4 4
  python -m maps.locate --list
  python -m maps.locate --map andromeda --grid 25
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional

import numpy as np

from common.config import load_settings
from common.geo import from_unit, to_unit
from common.logging_setup import ctx, get_logger, setup_logging
from common.types import MapDescriptor, NativeRegion, UnitPoint, native_from_axes
from maps.registry import MapRegistry


log = get_logger("maps.locate")


def _registry(maps_path: Optional[str]) -> MapRegistry:
    return MapRegistry.from_yaml(maps_path) if maps_path else MapRegistry.default()


def locate(
    registry: MapRegistry,
    map_key: str,
    *,
    name: Optional[str] = None,
    coord: Optional[List[float]] = None,
    field: Optional[List[float]] = None,
) -> Dict:
    """
    Build the JSON-ready answer printed by the CLI.
    Raises LookupError for unknown maps/objects.
    """
    desc = registry.describe(map_key)
    if desc is None:
        raise LookupError(f"unsupported map: {map_key}")

    if name is not None:
        poi = desc.points_of_interest.get(name.strip().lower())
        if poi is None:
            raise LookupError(f"{name!r} is not a known object on {desc.key}")
        native = poi.coordinate
        description = poi.description
    elif coord is not None:
        native = native_from_axes(desc.kind, coord[0], coord[1])
        description = ""
    else:
        raise LookupError("either a name or a coordinate is required")

    unit = to_unit(desc, native)
    out = {
        "map": desc.key,
        "native": native.to_dict(),
        "unit": {"x": unit.x, "y": unit.y},
        "description": description,
    }
    if field is not None:
        region = NativeRegion(desc.kind, native.axes, (field[0] / 2.0, field[1] / 2.0))
        out["nearby"] = [p.name for p in registry.points_near(desc.key, region)]
    return out


def roundtrip_error(desc: MapDescriptor, n: int = 25, margin: float = 0.05) -> Dict:
    """
    Push an n×n grid of unit-square points through inverse then forward
    transform and report the worst deviation. The margin keeps equatorial
    samples off the Mercator poles.
    """
    if n < 2:
        raise ValueError("grid needs at least 2 samples per axis")
    axis = np.linspace(margin, 1.0 - margin, n)
    gx, gy = np.meshgrid(axis, axis)
    pts = [to_unit(desc, from_unit(desc, UnitPoint(float(x), float(y)))) for x, y in zip(gx.ravel(), gy.ravel())]
    back = np.array([[p.x, p.y] for p in pts], dtype=float)
    err = np.hypot(back[:, 0] - gx.ravel(), back[:, 1] - gy.ravel())
    return {"map": desc.key, "samples": int(err.size), "max_error": float(err.max()), "mean_error": float(err.mean())}


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Locate objects in viewer coordinates")
    ap.add_argument("--config", default=None, help="Parameter YAML (default config/params.yaml)")
    ap.add_argument("--map", dest="map_key", default="unwise", help="Map key (unwise, andromeda, mars)")
    g = ap.add_mutually_exclusive_group()
    g.add_argument("--name", help="Known object name on the map")
    g.add_argument("--coord", nargs=2, type=float, metavar=("A", "B"), help="Native coordinate (ra dec | x y | lon lat)")
    g.add_argument("--list", action="store_true", help="List supported maps and exit")
    g.add_argument("--grid", type=int, metavar="N", help="Check transform round-trip error on an N×N grid")
    ap.add_argument("--field", nargs=2, type=float, metavar=("W", "H"), help="Native field size for the nearby search")
    args = ap.parse_args(argv)

    S = load_settings(args.config)
    setup_logging(S.log_level)
    registry = _registry(S.maps_path)

    if args.list:
        print(json.dumps(registry.summaries(), indent=2))
        return 0

    if args.grid is not None:
        desc = registry.describe(args.map_key)
        if desc is None:
            print(f"unsupported map: {args.map_key}", file=sys.stderr)
            return 2
        try:
            print(json.dumps(roundtrip_error(desc, args.grid), indent=2))
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
        return 0

    try:
        out = locate(registry, args.map_key, name=args.name, coord=args.coord, field=args.field)
    except LookupError as e:
        log.warning("Locate failed", **ctx(map=args.map_key, reason=str(e)))
        print(str(e), file=sys.stderr)
        return 2
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
