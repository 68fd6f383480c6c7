from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

from common.geo import to_unit
from common.logging_setup import ctx
from common.types import MapDescriptor, NativeCoordinate, SearchResult, UnitPoint
from overlay.viewer import NavigableViewer


log = logging.getLogger(__name__)

DEFAULT_ZOOM = 0.7


@dataclass(frozen=True, slots=True)
class PanZoom:
    point: UnitPoint
    zoom: float


class ResultPlacer:
    """Moves the viewer to a resolved coordinate with a single pan+zoom."""

    def __init__(
        self,
        viewer: NavigableViewer,
        *,
        default_zoom: float = DEFAULT_ZOOM,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        if not default_zoom > 0:
            raise ValueError("default_zoom must be > 0")
        self.viewer = viewer
        self.default_zoom = float(default_zoom)
        self._on_status = on_status

    def resolve_zoom(self, zoom_hint: Any) -> float:
        try:
            z = float(zoom_hint)
        except (TypeError, ValueError):
            return self.default_zoom
        return z if math.isfinite(z) and z > 0 else self.default_zoom

    def place(self, desc: MapDescriptor, coord: NativeCoordinate, zoom_hint: Optional[float] = None) -> PanZoom:
        point = to_unit(desc, coord)
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            raise ValueError(f"{coord!r} has no finite position on {desc.key}")
        move = PanZoom(point=point, zoom=self.resolve_zoom(zoom_hint))
        self.viewer.pan_zoom(move.point, move.zoom)
        log.info("Viewer moved", **ctx(map=desc.key, x=point.x, y=point.y, zoom=move.zoom))
        return move

    def place_search_result(self, desc: MapDescriptor, result: SearchResult) -> Optional[PanZoom]:
        """No viewer mutation unless the result is found and carries a coordinate."""
        if not result.found or result.coordinate is None:
            self._report(f"Not found: {result.description or 'no matching location'}")
            return None
        try:
            move = self.place(desc, result.coordinate, result.zoom_hint)
        except (TypeError, ValueError) as e:
            log.warning("Search result could not be placed", **ctx(map=desc.key, error=str(e)))
            self._report(f"Not found: {e}")
            return None
        self._report(f"Found: {result.description}")
        return move

    def _report(self, message: str) -> None:
        if self._on_status is not None:
            self._on_status(message)
