from __future__ import annotations

import math
from typing import Dict

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from backend.point_source import StaticPointSource
from common.config import load_settings
from common.geo import snapshot_region, to_unit
from common.logging_setup import ctx, get_logger, setup_logging
from common.types import MapDescriptor, UnitPoint, ViewportSnapshot, native_from_axes
from maps.catalog import BRIGHT_STARS
from maps.registry import MapRegistry


S = load_settings()
setup_logging(S.log_level)
log = get_logger("backend.server")

# Instances
registry = MapRegistry.from_yaml(S.maps_path) if S.maps_path else MapRegistry.default()
stars = StaticPointSource()

app = FastAPI(title="Stellar Resolution Catalogue API", version="1.0.0")

# (Optional) CORS for the browser viewer
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _map_or_404(key: str) -> MapDescriptor:
    desc = registry.describe(key)
    if desc is None:
        raise HTTPException(status_code=404, detail={"error": "unsupported_map", "map": key})
    return desc


def _detail(desc: MapDescriptor) -> Dict:
    out = desc.summary()
    out.update(
        {
            "title": desc.title,
            "bounds": desc.bounds.to_dict(),
            "attribution": desc.attribution,
            "point_annotated": desc.point_annotated,
            "points_of_interest": [
                {"name": p.name, "description": p.description, **p.coordinate.to_dict()}
                for p in desc.points_of_interest.values()
            ],
        }
    )
    if desc.image_width:
        out["image_size"] = {"width": desc.image_width, "height": desc.image_height}
    return out


@app.get("/health")
def health():
    return {"status": "ok", "maps": len(registry), "bright_stars": len(BRIGHT_STARS)}


@app.get("/maps")
def maps():
    return registry.summaries()


@app.get("/maps/{key}")
def map_detail(key: str):
    return _detail(_map_or_404(key))


@app.get("/maps/{key}/to-unit")
def map_to_unit(key: str, a: float = Query(..., description="first native axis"), b: float = Query(...)):
    """Forward transform of one native coordinate (ra/dec, x/y or lon/lat)."""
    desc = _map_or_404(key)
    p = to_unit(desc, native_from_axes(desc.kind, a, b))
    if not (math.isfinite(p.x) and math.isfinite(p.y)):
        raise HTTPException(status_code=422, detail={"error": "not_representable", "map": desc.key, "a": a, "b": b})
    return {"x": p.x, "y": p.y}


@app.get("/maps/{key}/viewport")
def map_viewport(
    key: str,
    cx: float = Query(..., description="viewport center x (unit square)"),
    cy: float = Query(...),
    width: float = Query(..., gt=0),
    height: float = Query(..., gt=0),
    zoom: float = Query(1.0),
):
    """Native field of a viewport and the known objects inside it."""
    desc = _map_or_404(key)
    snap = ViewportSnapshot(center=UnitPoint(cx, cy), width=width, height=height, zoom=zoom)
    region = snapshot_region(desc, snap)
    nearby = registry.points_near(desc.key, region)
    log.info("Viewport lookup", **ctx(map=desc.key, nearby=len(nearby)))
    return {
        "map": desc.key,
        "region": region.to_dict(),
        "nearby": [{"name": p.name, "description": p.description, **p.coordinate.to_dict()} for p in nearby],
    }


@app.get("/stars/bright")
def bright_stars():
    return {"stars": BRIGHT_STARS}


@app.get("/api/stars")
def stars_in_region(
    ralo: float = Query(...),
    rahi: float = Query(...),
    declo: float = Query(...),
    dechi: float = Query(...),
):
    """Bright stars inside an RA/Dec box, in the legacysurvey {rd, name} layout."""
    if ralo > rahi or declo > dechi:
        raise HTTPException(status_code=422, detail={"error": "inverted_bounds"})
    rows = stars.select(ralo, rahi, declo, dechi)
    return {
        "rd": [[s["ra"], s["dec"]] for s in rows],
        "name": [s["name"] for s in rows],
        "mag": [s["mag"] for s in rows],
    }


# -------- local dev entrypoint --------
if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3001)
