from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

from common.types import ViewportSnapshot


log = logging.getLogger(__name__)

SettledCallback = Callable[[ViewportSnapshot], Any]
OpenedCallback = Callable[[], Any]


class ViewportTracker:
    """
    Debounces viewer navigation into settled ViewportSnapshots.

    - viewport_changed(): (re)arms a quiet-period timer; only the last snapshot
      of a burst reaches subscribers.
    - image_opened(): cancels the timer, tells subscribers a new image is up
      (so they can drop old overlays) and delivers immediately.
    - destroy(): cancels the timer; nothing is delivered afterwards.

    Timers go through `loop.call_later`, so callbacks run on the loop thread.
    Usable as a context manager to scope the timer to a viewer's lifetime.
    """

    def __init__(self, debounce_s: float = 0.5, *, loop: Optional[asyncio.AbstractEventLoop] = None):
        if debounce_s < 0:
            raise ValueError("debounce_s must be >= 0")
        self.debounce_s = float(debounce_s)
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[ViewportSnapshot] = None
        self._subs: List[Tuple[SettledCallback, Optional[OpenedCallback]]] = []
        self._destroyed = False

    # -------- subscription --------

    def subscribe(self, on_settled: SettledCallback, on_opened: Optional[OpenedCallback] = None) -> Callable[[], None]:
        """Register callbacks; returns an unsubscribe function."""
        pair = (on_settled, on_opened)
        if not self._destroyed:
            self._subs.append(pair)

        def _unsubscribe() -> None:
            if pair in self._subs:
                self._subs.remove(pair)

        return _unsubscribe

    # -------- viewer events --------

    def viewport_changed(self, snapshot: ViewportSnapshot) -> None:
        if self._destroyed:
            log.debug("viewport_changed after destroy ignored")
            return
        self._pending = snapshot
        self._cancel_timer()
        self._handle = self._get_loop().call_later(self.debounce_s, self._fire)

    def image_opened(self, snapshot: Optional[ViewportSnapshot] = None) -> None:
        if self._destroyed:
            log.debug("image_opened after destroy ignored")
            return
        self._cancel_timer()
        self._pending = None
        for _, on_opened in list(self._subs):
            if on_opened is not None:
                self._call(on_opened)
        if snapshot is not None:
            self._deliver(snapshot)

    def flush(self) -> Optional[ViewportSnapshot]:
        """Deliver the pending snapshot now (if any) instead of waiting."""
        if self._destroyed or self._pending is None:
            return None
        self._cancel_timer()
        return self._fire()

    def destroy(self) -> None:
        self._cancel_timer()
        self._pending = None
        self._subs.clear()
        self._destroyed = True

    # -------- introspection --------

    @property
    def pending(self) -> Optional[ViewportSnapshot]:
        return self._pending

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def __enter__(self) -> "ViewportTracker":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.destroy()

    # -------- internals --------

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> Optional[ViewportSnapshot]:
        self._handle = None
        snap, self._pending = self._pending, None
        if snap is None or self._destroyed:
            return None
        self._deliver(snap)
        return snap

    def _deliver(self, snapshot: ViewportSnapshot) -> None:
        for on_settled, _ in list(self._subs):
            self._call(on_settled, snapshot)

    @staticmethod
    def _call(fn: Callable[..., Any], *args: Any) -> None:
        # one bad subscriber must not starve the others
        try:
            fn(*args)
        except Exception:
            log.exception("Viewport subscriber %r failed", fn)
