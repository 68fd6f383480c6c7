"""
Overlay synchronizer: keeps the viewer's star overlays in step with the viewport.

State per map session:

    IDLE -> LOADING -> SETTLED -> (LOADING | CLEARED)

Every snapshot bumps a request counter. Only the resolution of the most recent
request may touch the live overlay mapping ("last snapshot wins"); older
resolutions are dropped. The mapping is only mutated on the event-loop thread,
inside _apply() or clear().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set

from backend.errors import FetchFailure
from backend.point_source import PointSource
from common.geo import snapshot_region, to_unit
from common.logging_setup import ctx
from common.types import DisplayTier, MapDescriptor, NativeRegion, OverlayEntry, PointRecord, ViewportSnapshot
from overlay.viewer import OverlayViewer


log = logging.getLogger(__name__)

DOT_VISIBILITY_THRESHOLD = 5.0
TEXT_VISIBILITY_THRESHOLD = 10.0
FETCH_TIMEOUT_S = 10.0


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SETTLED = "settled"
    CLEARED = "cleared"


@dataclass(slots=True)
class SyncReport:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)

    @property
    def operations(self) -> int:
        return len(self.added) + len(self.removed) + len(self.updated)


class OverlaySynchronizer:
    def __init__(
        self,
        viewer: OverlayViewer,
        source: PointSource,
        *,
        dot_zoom: float = DOT_VISIBILITY_THRESHOLD,
        label_zoom: float = TEXT_VISIBILITY_THRESHOLD,
        fetch_timeout_s: float = FETCH_TIMEOUT_S,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        if label_zoom < dot_zoom:
            raise ValueError("label_zoom must be >= dot_zoom")
        self.viewer = viewer
        self.source = source
        self.dot_zoom = float(dot_zoom)
        self.label_zoom = float(label_zoom)
        self.fetch_timeout_s = float(fetch_timeout_s)
        self._on_status = on_status

        self._desc: Optional[MapDescriptor] = None
        self._live: Dict[str, OverlayEntry] = {}
        self._state = SyncState.IDLE
        self._resting = SyncState.IDLE  # state to fall back to if a refresh fails
        self._seq = 0
        self._tasks: Set["asyncio.Task[Optional[SyncReport]]"] = set()

    # -------- properties --------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def live(self) -> Mapping[str, OverlayEntry]:
        return MappingProxyType(self._live)

    @property
    def descriptor(self) -> Optional[MapDescriptor]:
        return self._desc

    @property
    def latest_request(self) -> int:
        return self._seq

    def tier_for(self, zoom: float) -> Optional[DisplayTier]:
        """None below the dot threshold, LABELED at/above the text threshold."""
        if zoom < self.dot_zoom:
            return None
        return DisplayTier.LABELED if zoom >= self.label_zoom else DisplayTier.DOT

    # -------- map session --------

    def set_map(self, desc: Optional[MapDescriptor]) -> None:
        """Switch the active map; overlays of the previous map are removed."""
        self.clear()
        self._desc = desc
        self._state = self._resting = SyncState.IDLE

    def reset(self) -> None:
        """Drop the map session: overlays removed, in-flight fetches superseded and cancelled."""
        self.set_map(None)
        for task in list(self._tasks):
            task.cancel()

    # -------- snapshots --------

    def on_snapshot(self, snapshot: ViewportSnapshot) -> Optional["asyncio.Task[Optional[SyncReport]]"]:
        """
        Handle a settled viewport. Returns the fetch task, or None when the
        snapshot clears overlays instead (no query issued).
        Must be called from inside a running event loop.
        """
        plan = self._plan(snapshot)
        if plan is None:
            return None
        task = asyncio.get_running_loop().create_task(self._resolve(*plan))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def sync(self, snapshot: ViewportSnapshot) -> Optional[SyncReport]:
        """Same as on_snapshot() but awaits the result in place."""
        plan = self._plan(snapshot)
        if plan is None:
            return None
        return await self._resolve(*plan)

    def clear(self) -> int:
        """Remove every live overlay; idempotent. Supersedes in-flight fetches."""
        self._seq += 1
        removed = len(self._live)
        for entry in list(self._live.values()):
            self.viewer.remove_overlay(entry.element)
        self._live.clear()
        if removed or self._state is not SyncState.IDLE:
            self._state = self._resting = SyncState.CLEARED
        return removed

    # -------- internals --------

    def _plan(self, snapshot: ViewportSnapshot):
        desc = self._desc
        tier = self.tier_for(snapshot.zoom)
        if desc is None or not desc.point_annotated or tier is None:
            self.clear()
            return None

        self._seq += 1
        if self._state is not SyncState.LOADING:
            self._resting = self._state
        self._state = SyncState.LOADING
        region = snapshot_region(desc, snapshot)
        log.debug("Overlay fetch issued", **ctx(request=self._seq, map=desc.key, zoom=snapshot.zoom, region=region.to_dict()))
        return self._seq, desc, region, tier

    async def _resolve(
        self, request_id: int, desc: MapDescriptor, region: NativeRegion, tier: DisplayTier
    ) -> Optional[SyncReport]:
        try:
            points = await asyncio.wait_for(
                self.source.fetch_points_in_region(desc.key, region), timeout=self.fetch_timeout_s
            )
        except (FetchFailure, asyncio.TimeoutError) as e:
            if request_id != self._seq:
                return None
            reason = str(e) or f"timed out after {self.fetch_timeout_s:g}s"
            log.warning("Failed to fetch bright stars", **ctx(request=request_id, map=desc.key, error=reason))
            self._settle_failed(f"Failed to fetch bright stars: {reason}")
            return None
        except Exception as e:
            if request_id != self._seq:
                return None
            log.exception("Point source raised unexpectedly", **ctx(request=request_id, map=desc.key))
            self._settle_failed(f"Failed to fetch bright stars: {e}")
            return None

        if request_id != self._seq or desc is not self._desc:
            log.debug("Superseded overlay fetch discarded", **ctx(request=request_id, latest=self._seq))
            return None
        try:
            return self._apply(desc, points, tier)
        except Exception as e:
            # entries applied before the failure stay tracked in _live
            log.exception("Failed to update overlays", **ctx(request=request_id, map=desc.key))
            self._settle_failed(f"Failed to update overlays: {e}")
            return None

    def _settle_failed(self, message: str) -> None:
        self._state = SyncState.SETTLED if self._live else self._resting
        self._report(message)

    def _task_done(self, task: "asyncio.Task[Optional[SyncReport]]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Overlay task failed", exc_info=task.exception())

    def _apply(self, desc: MapDescriptor, points: Sequence[PointRecord], tier: DisplayTier) -> SyncReport:
        incoming: Dict[str, PointRecord] = {}
        for p in points:
            if p.name in incoming:
                continue
            if p.coordinate.kind is not desc.kind:
                log.warning("Dropping point with foreign coordinate kind", **ctx(name=p.name, kind=p.coordinate.kind.value))
                continue
            incoming[p.name] = p

        report = SyncReport()
        for oid in [k for k in self._live if k not in incoming]:
            entry = self._live.pop(oid)
            self.viewer.remove_overlay(entry.element)
            report.removed.append(oid)

        for oid, p in incoming.items():
            entry = self._live.get(oid)
            if entry is None:
                entry = OverlayEntry(id=oid, coordinate=p.coordinate, tier=tier, location=to_unit(desc, p.coordinate), label=p.name)
                entry.element = self.viewer.add_overlay(entry)
                self._live[oid] = entry
                report.added.append(oid)
            elif entry.tier is not tier or entry.coordinate != p.coordinate:
                entry.tier = tier
                if entry.coordinate != p.coordinate:
                    entry.coordinate = p.coordinate
                    entry.location = to_unit(desc, p.coordinate)
                self.viewer.update_overlay(entry.element, entry)
                report.updated.append(oid)

        self._state = SyncState.SETTLED
        if report.operations:
            log.info(
                "Overlays synchronized",
                **ctx(map=desc.key, added=len(report.added), removed=len(report.removed), updated=len(report.updated), live=len(self._live)),
            )
        return report

    def _report(self, message: str) -> None:
        if self._on_status is not None:
            self._on_status(message)
