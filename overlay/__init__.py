"""
Overlay — viewport tracking and overlay synchronization for the deep-zoom viewer

- viewer: protocols the viewer adapter implements (overlays, pan/zoom, annotations)
- viewport: ViewportTracker, debounces navigation into settled snapshots
- synchronizer: OverlaySynchronizer, keeps star overlays consistent with the viewport
- placement: ResultPlacer, moves the viewer to a resolved coordinate
- session: ExplorerSession, the facade used by the UI layer

Usage:
    tracker = ViewportTracker(S.debounce_s)
    session = ExplorerSession(MapRegistry.default(), viewer, StaticPointSource())
    session.attach(tracker)
"""
