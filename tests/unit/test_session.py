"""
Unit tests for the explorer session facade
"""

import asyncio
import os
import sys
from unittest.mock import Mock

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from backend.errors import FetchFailure
from backend.annotations import AnnotationStore
from backend.point_source import HttpPointSource, StaticPointSource
from backend.search import SearchClient
from common.config import Settings
from common.geo import equatorial_to_unit, planetary_to_unit
from common.types import AnalysisResult, AnnotationRecord, Equatorial, Planetary, SearchResult, UnitPoint, ViewportSnapshot
from maps.registry import MapRegistry
from overlay.session import ExplorerSession
from overlay.synchronizer import SyncState
from overlay.viewport import ViewportTracker


def settings(**overrides):
    base = dict(
        backend_url="http://backend.test",
        stars_url="http://backend.test/api/stars",
        request_timeout_s=1.0,
        debounce_s=0.5,
        dot_zoom=5.0,
        label_zoom=10.0,
        fetch_timeout_s=1.0,
        default_zoom=0.7,
        maps_path=None,
        log_level="INFO",
    )
    base.update(overrides)
    return Settings(**base)


def orion_snapshot(zoom):
    x, y = equatorial_to_unit(85.0, 0.0)
    return ViewportSnapshot(center=UnitPoint(x, y), width=0.05, height=0.06, zoom=zoom)


def olympus_snapshot(zoom=3.0):
    x, y = planetary_to_unit(-133.8, 18.65)
    return ViewportSnapshot(center=UnitPoint(x, y), width=0.02, height=0.02, zoom=zoom)


class FakeLoop:
    def call_later(self, delay, callback):
        return Mock()


class TestExplorerSession:
    """Facade wiring"""

    def setup_method(self):
        self.viewer = Mock()
        self.viewer.add_overlay.side_effect = lambda entry: f"el-{entry.id}"
        self.store = Mock()
        self.store.fetch_annotations.return_value = []
        self.layer = Mock()
        self.search = Mock()
        self.status = []
        self.session = ExplorerSession(
            MapRegistry.default(),
            self.viewer,
            StaticPointSource(),
            search_client=self.search,
            annotation_store=self.store,
            annotation_layer=self.layer,
            settings=settings(),
            on_status=self.status.append,
        )

    def open(self, key):
        return asyncio.run(self.session.on_map_opened(key))

    # -------- map lifecycle --------

    def test_unknown_map_reports_status(self):
        assert self.open("venus") is None
        assert self.session.last_status == "Unsupported map type: venus"
        assert self.session.descriptor is None
        self.store.fetch_annotations.assert_not_called()

    def test_open_loads_annotations(self):
        rec = AnnotationRecord(id="a1", label="knot")
        self.store.fetch_annotations.return_value = [rec]
        desc = self.open(" Andromeda ")
        assert desc.key == "andromeda"
        self.store.fetch_annotations.assert_called_once_with("andromeda")
        self.layer.clear_annotations.assert_called()
        self.layer.add_annotation.assert_called_once_with(rec)

    def test_annotation_load_failure_is_reported(self):
        self.store.fetch_annotations.side_effect = FetchFailure("store down")
        assert self.open("mars") is not None
        assert self.session.last_status == "Failed to load annotations: store down"
        self.layer.add_annotation.assert_not_called()

    def test_close_clears_everything(self):
        self.open("unwise")
        asyncio.run(self.session.sync.sync(orion_snapshot(6)))
        assert len(self.session.sync.live) == 3
        self.session.on_map_closed()
        assert dict(self.session.sync.live) == {}
        assert self.viewer.remove_overlay.call_count == 3
        assert self.session.descriptor is None

    # -------- overlays --------

    def test_settled_snapshot_adds_orion_stars(self):
        self.open("unwise")

        async def scenario():
            task = self.session.on_viewport_settled(orion_snapshot(6))
            return await task

        report = asyncio.run(scenario())
        assert sorted(report.added) == ["Bellatrix", "Betelgeuse", "Rigel"]
        assert self.session.sync.state is SyncState.SETTLED

    def test_viewer_error_becomes_status(self):
        self.open("unwise")
        self.viewer.add_overlay.side_effect = RuntimeError("canvas detached")

        async def scenario():
            task = self.session.on_viewport_settled(orion_snapshot(6))
            await asyncio.sleep(0.05)
            return task

        task = asyncio.run(scenario())
        assert task.done() and task.exception() is None
        assert self.session.sync.state is SyncState.IDLE
        assert self.session.last_status == "Failed to update overlays: canvas detached"

    def test_settled_snapshot_below_threshold(self):
        self.open("unwise")

        async def scenario():
            return self.session.on_viewport_settled(orion_snapshot(4.999))

        assert asyncio.run(scenario()) is None
        self.viewer.add_overlay.assert_not_called()

    def test_attach_routes_tracker_events(self):
        self.open("unwise")
        tracker = ViewportTracker(0.5, loop=FakeLoop())
        self.session.attach(tracker)

        async def scenario():
            await self.session.sync.sync(orion_snapshot(6))
            tracker.image_opened()
            return len(self.session.sync.live)

        assert asyncio.run(scenario()) == 0
        assert self.viewer.remove_overlay.call_count == 3

    def test_clear_overlays(self):
        self.open("unwise")
        asyncio.run(self.session.sync.sync(orion_snapshot(12)))
        assert self.session.clear_overlays() == 3
        assert self.session.clear_overlays() == 0

    # -------- placement & search --------

    def test_place_result_without_map(self):
        assert self.session.place_result(Planetary(0, 0)) is None
        assert self.session.last_status == "No map open"
        self.viewer.pan_zoom.assert_not_called()

    def test_place_result(self):
        self.open("mars")
        move = self.session.place_result(Planetary(-133.8, 18.65), zoom_hint=5)
        assert move.point.x == pytest.approx(0.128333, abs=1e-6)
        self.viewer.pan_zoom.assert_called_once_with(move.point, 5.0)

    def test_place_result_at_pole_reports_status(self):
        self.open("unwise")
        assert self.session.place_result(Equatorial(10.0, -90.0)) is None
        assert self.session.last_status.startswith("Cannot place result:")
        assert "no finite position" in self.session.last_status
        self.viewer.pan_zoom.assert_not_called()

    def test_place_result_wrong_kind_reports_status(self):
        self.open("mars")
        assert self.session.place_result(Equatorial(83.8, -5.4)) is None
        assert self.session.last_status.startswith("Cannot place result:")
        self.viewer.pan_zoom.assert_not_called()

    def test_search_found_moves_viewer(self):
        self.open("mars")
        self.search.search_location.return_value = SearchResult(
            found=True, coordinate=Planetary(-133.8, 18.65), description="Olympus Mons", confidence=0.9
        )
        res = asyncio.run(self.session.search("biggest volcano"))
        assert res.found
        self.search.search_location.assert_called_once_with("mars", "biggest volcano", None)
        self.viewer.pan_zoom.assert_called_once()
        assert self.status[-2:] == ["Searching for: biggest volcano", "Found: Olympus Mons"]

    def test_search_not_found_leaves_viewer(self):
        self.open("mars")
        self.search.search_location.return_value = SearchResult(found=False, description="Location not found")
        asyncio.run(self.session.search("atlantis"))
        self.viewer.pan_zoom.assert_not_called()
        assert self.session.last_status == "Not found: Location not found"

    def test_search_failure(self):
        self.open("mars")
        self.search.search_location.side_effect = FetchFailure("service down")
        res = asyncio.run(self.session.search("x"))
        assert not res.found
        assert self.session.last_status == "Search failed: service down"
        self.viewer.pan_zoom.assert_not_called()

    def test_search_unavailable_without_map(self):
        res = asyncio.run(self.session.search("x"))
        assert not res.found
        assert self.session.last_status == "Search unavailable"

    # -------- analysis --------

    def test_analysis_fallback_uses_known_objects(self):
        session = ExplorerSession(MapRegistry.default(), self.viewer, StaticPointSource(), settings=settings())
        asyncio.run(session.on_map_opened("mars"))
        res = asyncio.run(session.analyze_viewport(olympus_snapshot()))
        assert res.nearby_known_objects == ("olympus mons",)
        assert res.analysis == "Viewing Mars near olympus mons"

    def test_analysis_merges_service_and_local(self):
        self.open("mars")
        self.search.analyze_viewport.return_value = AnalysisResult(analysis="Shield volcano", nearby_known_objects=("tharsis", "olympus mons"))
        res = asyncio.run(self.session.analyze_viewport(olympus_snapshot(), "what is this"))
        assert res.analysis == "Shield volcano"
        assert res.nearby_known_objects == ("tharsis", "olympus mons")

    def test_analysis_failure_falls_back(self):
        self.open("mars")
        self.search.analyze_viewport.side_effect = FetchFailure("timeout")
        res = asyncio.run(self.session.analyze_viewport(olympus_snapshot()))
        assert res.nearby_known_objects == ("olympus mons",)
        assert "Analysis failed: timeout" in self.status

    # -------- annotations --------

    def test_create_annotation(self):
        self.open("andromeda")
        self.store.create_annotation.return_value = "srv-1"
        rec = AnnotationRecord(id="", label="knot")
        assert asyncio.run(self.session.create_annotation(rec)) == "srv-1"
        self.store.create_annotation.assert_called_once_with("andromeda", rec)

    def test_update_annotation_invalid_id(self):
        self.open("andromeda")
        self.store.update_annotation.side_effect = ValueError("annotation id must not contain '/'")
        assert asyncio.run(self.session.update_annotation(AnnotationRecord(id="a/b"))) is False
        assert self.session.last_status.startswith("Failed to update annotation")

    def test_delete_annotation(self):
        self.open("andromeda")
        assert asyncio.run(self.session.delete_annotation("a1")) is True
        self.store.delete_annotation.assert_called_once_with("andromeda", "a1")

    def test_delete_annotation_failure(self):
        self.open("andromeda")
        self.store.delete_annotation.side_effect = FetchFailure("annotation store returned 500", status_code=500)
        assert asyncio.run(self.session.delete_annotation("a1")) is False
        assert self.session.last_status == "Failed to delete annotation: annotation store returned 500"

    def test_annotations_without_map(self):
        assert asyncio.run(self.session.create_annotation(AnnotationRecord(id="x"))) is None
        assert self.session.last_status == "Annotations unavailable"

    def test_close_cancels_in_flight_fetch(self):
        self.open("unwise")

        async def scenario():
            task = self.session.on_viewport_settled(orion_snapshot(6))
            self.session.on_map_closed()
            for _ in range(3):
                await asyncio.sleep(0)
            return task

        task = asyncio.run(scenario())
        assert task.cancelled()
        self.viewer.add_overlay.assert_not_called()
        assert self.session.sync.descriptor is None


class TestFromSettings:
    """Clients and tracker built from Settings"""

    def test_clients_use_configured_urls_and_timeout(self):
        S = settings(backend_url="http://search.test", stars_url="http://stars.test/api/stars", request_timeout_s=2.5)
        http = Mock()
        session = ExplorerSession.from_settings(Mock(), S, http=http)

        assert session.settings is S
        assert isinstance(session.sync.source, HttpPointSource)
        assert session.sync.source.base_url == "http://stars.test/api/stars"
        assert session.sync.source.timeout == 2.5
        assert isinstance(session.search_client, SearchClient)
        assert session.search_client.base_url == "http://search.test"
        assert session.search_client.timeout == 2.5
        assert session.search_client.registry is session.registry
        assert isinstance(session.annotation_store, AnnotationStore)
        assert session.annotation_store.base_url == "http://search.test"
        assert session.annotation_store.timeout == 2.5
        assert session.sync.source.session is http
        assert session.search_client.session is http
        assert session.annotation_store.session is http

    def test_thresholds_follow_settings(self):
        session = ExplorerSession.from_settings(Mock(), settings(dot_zoom=3.0, label_zoom=8.0, fetch_timeout_s=4.0), http=Mock())
        assert session.sync.dot_zoom == 3.0
        assert session.sync.label_zoom == 8.0
        assert session.sync.fetch_timeout_s == 4.0
        assert session.registry.describe("unwise") is not None

    def test_tracker_uses_configured_debounce(self):
        session = ExplorerSession.from_settings(Mock(), settings(debounce_s=0.25), http=Mock())
        tracker = session.make_tracker(loop=FakeLoop())
        assert tracker.debounce_s == 0.25
        session.sync.clear = Mock(return_value=0)
        tracker.image_opened()
        session.sync.clear.assert_called_once_with()
