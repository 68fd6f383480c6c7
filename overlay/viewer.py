from __future__ import annotations

from typing import Any, Protocol

from common.types import AnnotationRecord, OverlayEntry, UnitPoint


class OverlayViewer(Protocol):
    """Overlay layer of the deep-zoom viewer. Elements are opaque handles."""

    def add_overlay(self, entry: OverlayEntry) -> Any:
        ...

    def update_overlay(self, element: Any, entry: OverlayEntry) -> None:
        ...

    def remove_overlay(self, element: Any) -> None:
        ...


class NavigableViewer(Protocol):
    def pan_zoom(self, point: UnitPoint, zoom: float) -> None:
        """Pan to `point` and zoom to `zoom` as one instruction."""
        ...


class AnnotationLayer(Protocol):
    def add_annotation(self, record: AnnotationRecord) -> None:
        ...

    def clear_annotations(self) -> None:
        ...
