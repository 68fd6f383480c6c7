"""
ExplorerSession: the surface the viewer/UI layer talks to.

Wires one map session together: the overlay synchronizer (star overlays), the
result placer (search hits), and the optional external clients (search service,
annotation store). Blocking clients run through asyncio.to_thread; everything
else happens on the event-loop thread.

Usage:
    session = ExplorerSession.from_settings(viewer, load_settings())
    tracker = session.make_tracker()
    await session.on_map_opened("unwise")
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Callable, List, Mapping, Optional

import requests

from backend.annotations import AnnotationStore
from backend.errors import FetchFailure
from backend.point_source import HttpPointSource, PointSource
from backend.search import SearchClient
from common.config import Settings, load_settings
from common.geo import snapshot_region
from common.logging_setup import ctx
from common.types import AnalysisResult, AnnotationRecord, MapDescriptor, NativeCoordinate, SearchResult, ViewportSnapshot
from maps.registry import MapRegistry
from overlay.placement import PanZoom, ResultPlacer
from overlay.synchronizer import OverlaySynchronizer, SyncReport
from overlay.viewer import AnnotationLayer
from overlay.viewport import ViewportTracker


log = logging.getLogger(__name__)


class ExplorerSession:
    def __init__(
        self,
        registry: MapRegistry,
        viewer: Any,
        point_source: PointSource,
        *,
        search_client: Optional[SearchClient] = None,
        annotation_store: Optional[AnnotationStore] = None,
        annotation_layer: Optional[AnnotationLayer] = None,
        settings: Optional[Settings] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        """
        Params:
            viewer: implements both OverlayViewer and NavigableViewer
            point_source: bright-star source for point-annotated maps
            search_client / annotation_store / annotation_layer: optional collaborators
            settings: thresholds and default zoom (load_settings() when omitted)
            on_status: receives every user-facing status message
        """
        S = settings or load_settings()
        self.registry = registry
        self.settings = S
        self.search_client = search_client
        self.annotation_store = annotation_store
        self.annotation_layer = annotation_layer
        self._on_status = on_status
        self._desc: Optional[MapDescriptor] = None
        self.last_status: Optional[str] = None

        self.sync = OverlaySynchronizer(
            viewer,
            point_source,
            dot_zoom=S.dot_zoom,
            label_zoom=S.label_zoom,
            fetch_timeout_s=S.fetch_timeout_s,
            on_status=self._status,
        )
        self.placer = ResultPlacer(viewer, default_zoom=S.default_zoom, on_status=self._status)

    @classmethod
    def from_settings(
        cls,
        viewer: Any,
        settings: Optional[Settings] = None,
        *,
        annotation_layer: Optional[AnnotationLayer] = None,
        on_status: Optional[Callable[[str], None]] = None,
        http: Optional[requests.Session] = None,
    ) -> "ExplorerSession":
        """
        Build a session with HTTP clients configured from Settings: bright
        stars from stars_url, search and annotations from backend_url, all
        with request_timeout_s. One requests.Session is shared between them.
        """
        S = settings or load_settings()
        http = http or requests.Session()
        registry = MapRegistry.from_yaml(S.maps_path) if S.maps_path else MapRegistry.default()
        return cls(
            registry,
            viewer,
            HttpPointSource(S.stars_url, http, timeout=S.request_timeout_s),
            search_client=SearchClient(S.backend_url, http, timeout=S.request_timeout_s, registry=registry),
            annotation_store=AnnotationStore(S.backend_url, http, timeout=S.request_timeout_s),
            annotation_layer=annotation_layer,
            settings=S,
            on_status=on_status,
        )

    def make_tracker(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> ViewportTracker:
        """A ViewportTracker with the configured debounce, already attached to this session."""
        tracker = ViewportTracker(self.settings.debounce_s, loop=loop)
        self.attach(tracker)
        return tracker

    @property
    def descriptor(self) -> Optional[MapDescriptor]:
        return self._desc

    # ----------------------------
    # Viewer events
    # ----------------------------
    def attach(self, tracker: ViewportTracker) -> Callable[[], None]:
        """Route settled snapshots to the synchronizer; a new image clears overlays first."""
        return tracker.subscribe(self.on_viewport_settled, self.clear_overlays)

    def on_viewport_settled(self, snapshot: ViewportSnapshot) -> Optional["asyncio.Task[Optional[SyncReport]]"]:
        return self.sync.on_snapshot(snapshot)

    async def on_map_opened(self, map_key: str) -> Optional[MapDescriptor]:
        desc = self.registry.describe(map_key)
        self.sync.set_map(desc)
        self._desc = desc
        if self.annotation_layer is not None:
            self.annotation_layer.clear_annotations()
        if desc is None:
            log.warning("Unsupported map requested", **ctx(map=map_key))
            self._status(f"Unsupported map type: {map_key}")
            return None
        log.info("Map opened", **ctx(map=desc.key, kind=desc.kind.value))
        await self.load_annotations()
        return desc

    def on_map_closed(self) -> None:
        self.sync.reset()
        self._desc = None
        if self.annotation_layer is not None:
            self.annotation_layer.clear_annotations()

    def clear_overlays(self) -> int:
        return self.sync.clear()

    def place_result(self, coordinate: NativeCoordinate, zoom_hint: Optional[float] = None) -> Optional[PanZoom]:
        if self._desc is None:
            self._status("No map open")
            return None
        try:
            return self.placer.place(self._desc, coordinate, zoom_hint)
        except (TypeError, ValueError) as e:
            log.warning("Cannot place result", **ctx(map=self._desc.key, error=str(e)))
            self._status(f"Cannot place result: {e}")
            return None

    # ----------------------------
    # Search & analysis
    # ----------------------------
    async def search(self, query: str, context: Optional[Mapping[str, Any]] = None) -> SearchResult:
        desc = self._desc
        if desc is None or self.search_client is None:
            self._status("Search unavailable")
            return SearchResult(found=False, description="Search unavailable")
        self._status(f"Searching for: {query}")
        try:
            result = await asyncio.to_thread(self.search_client.search_location, desc.key, query, context)
        except FetchFailure as e:
            log.warning("Search failed", **ctx(map=desc.key, query=query, error=str(e)))
            self._status(f"Search failed: {e}")
            return SearchResult(found=False, description=str(e))
        if desc is not self._desc:
            log.debug("Search result for a closed map discarded", **ctx(map=desc.key))
            return result
        self.placer.place_search_result(desc, result)
        return result

    async def analyze_viewport(self, snapshot: ViewportSnapshot, query: str = "") -> AnalysisResult:
        desc = self._desc
        if desc is None:
            self._status("No map open")
            return AnalysisResult()
        region = snapshot_region(desc, snapshot)
        nearby = tuple(p.name for p in self.registry.points_near(desc.key, region))

        result: Optional[AnalysisResult] = None
        if self.search_client is not None:
            try:
                result = await asyncio.to_thread(self.search_client.analyze_viewport, desc.key, snapshot, query)
            except FetchFailure as e:
                log.warning("Viewport analysis failed", **ctx(map=desc.key, error=str(e)))
                self._status(f"Analysis failed: {e}")

        if result is None:
            summary = f"Viewing {desc.title or desc.key}"
            if nearby:
                summary += " near " + ", ".join(nearby)
            return AnalysisResult(analysis=summary, nearby_known_objects=nearby)

        merged = tuple(dict.fromkeys(result.nearby_known_objects + nearby))
        return dataclasses.replace(result, nearby_known_objects=merged)

    # ----------------------------
    # Annotations
    # ----------------------------
    async def load_annotations(self) -> List[AnnotationRecord]:
        desc = self._desc
        if desc is None or self.annotation_store is None:
            return []
        try:
            records = await asyncio.to_thread(self.annotation_store.fetch_annotations, desc.key)
        except FetchFailure as e:
            log.warning("Failed to load annotations", **ctx(map=desc.key, error=str(e)))
            self._status(f"Failed to load annotations: {e}")
            return []
        if desc is not self._desc:
            return []
        if self.annotation_layer is not None:
            self.annotation_layer.clear_annotations()
            for r in records:
                self.annotation_layer.add_annotation(r)
        log.info("Annotations loaded", **ctx(map=desc.key, count=len(records)))
        return records

    async def create_annotation(self, record: AnnotationRecord) -> Optional[str]:
        if not self._can_annotate():
            return None
        try:
            return await asyncio.to_thread(self.annotation_store.create_annotation, self._desc.key, record)
        except (FetchFailure, ValueError) as e:
            return self._annotation_failed("save", e)

    async def update_annotation(self, record: AnnotationRecord) -> bool:
        if not self._can_annotate():
            return False
        try:
            await asyncio.to_thread(self.annotation_store.update_annotation, self._desc.key, record.id, record)
        except (FetchFailure, ValueError) as e:
            return bool(self._annotation_failed("update", e))
        return True

    async def delete_annotation(self, annotation_id: str) -> bool:
        if not self._can_annotate():
            return False
        try:
            await asyncio.to_thread(self.annotation_store.delete_annotation, self._desc.key, annotation_id)
        except (FetchFailure, ValueError) as e:
            return bool(self._annotation_failed("delete", e))
        return True

    # ----------------------------
    # Internals
    # ----------------------------
    def _can_annotate(self) -> bool:
        if self._desc is None or self.annotation_store is None:
            self._status("Annotations unavailable")
            return False
        return True

    def _annotation_failed(self, action: str, e: Exception) -> None:
        log.warning("Annotation %s failed", action, **ctx(error=str(e)))
        self._status(f"Failed to {action} annotation: {e}")
        return None

    def _status(self, message: str) -> None:
        self.last_status = message
        if self._on_status is not None:
            self._on_status(message)
