"""
Bright-star point sources for the overlay synchronizer.

- HttpPointSource: queries the legacysurvey-style bright-star endpoint
  (`/api/stars?ralo&rahi&declo&dechi`, proxied by our backend) and parses
  {"rd": [[ra, dec], ...], "name": [...]}.
- StaticPointSource: filters the built-in BRIGHT_STARS list; no network.

Usage:
    src = HttpPointSource("http://localhost:3001/api/stars")
    points = await src.fetch_points_in_region("unwise", region)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence
from urllib.parse import urlencode

import numpy as np
import requests

from backend.errors import FetchFailure
from common.types import Equatorial, MapKind, NativeRegion, PointRecord
from maps.catalog import BRIGHT_STARS


log = logging.getLogger(__name__)


class PointSource(Protocol):
    async def fetch_points_in_region(self, map_key: str, region: NativeRegion) -> List[PointRecord]:
        ...


def _require_equatorial(region: NativeRegion) -> None:
    if region.kind is not MapKind.EQUATORIAL:
        raise TypeError(f"bright-star queries need an equatorial region, got {region.kind.value}")


def parse_bright_catalog(data: Mapping[str, Any]) -> List[PointRecord]:
    """
    Parse {"rd": [[ra, dec], ...], "name": [...]} into PointRecords.
    Missing arrays mean "no stars"; mismatched lengths are truncated to the shorter.
    """
    rd = data.get("rd")
    names = data.get("name")
    if not rd or not names:
        return []
    out: List[PointRecord] = []
    for (ra, dec), name in zip(rd, names):
        out.append(PointRecord(name=str(name), coordinate=Equatorial(float(ra), float(dec))))
    return out


class HttpPointSource:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        """
        Params:
            base_url: full URL of the bright-star endpoint (without query string)
            session: optional requests.Session for connection reuse
            timeout: per-request timeout (seconds)
        """
        if not base_url:
            raise ValueError("base_url is required for HttpPointSource")
        self.base_url = base_url.rstrip("?")
        self.session = session or requests.Session()
        self.timeout = float(timeout)

    # ----------------------------
    # Public API
    # ----------------------------
    def build_url(self, region: NativeRegion) -> str:
        """Query URL for an equatorial region (no request performed)."""
        _require_equatorial(region)
        ralo, rahi, declo, dechi = region.bounds
        params = {"ralo": ralo, "rahi": rahi, "declo": declo, "dechi": dechi}
        return f"{self.base_url}?{urlencode(params)}"

    def get_points(self, region: NativeRegion) -> List[PointRecord]:
        """Blocking fetch. Raises FetchFailure on network/HTTP/parse errors."""
        url = self.build_url(region)
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailure(f"bright-star request failed: {e}") from e
        if r.status_code != 200:
            log.warning("Bright-star request failed: %s %s", r.status_code, r.text[:200])
            raise FetchFailure(f"bright-star endpoint returned {r.status_code}", status_code=r.status_code, body=r.text[:500])
        try:
            return parse_bright_catalog(r.json())
        except (ValueError, TypeError, AttributeError) as e:
            raise FetchFailure(f"bright-star response was not valid catalogue JSON: {e}", body=r.text[:500]) from e

    async def fetch_points_in_region(self, map_key: str, region: NativeRegion) -> List[PointRecord]:
        # requests is blocking; keep the event loop free for new snapshots
        log.debug("Fetching bright stars for %s %s", map_key, region.to_dict())
        return await asyncio.to_thread(self.get_points, region)


class StaticPointSource:
    """Region filter over an in-memory star list (defaults to BRIGHT_STARS)."""

    def __init__(self, stars: Optional[Sequence[Mapping[str, Any]]] = None, max_mag: Optional[float] = None):
        rows = list(stars if stars is not None else BRIGHT_STARS)
        if max_mag is not None:
            rows = [s for s in rows if float(s.get("mag", 0.0)) <= max_mag]
        self._rows = rows
        self._ra = np.array([float(s["ra"]) for s in rows], dtype=float)
        self._dec = np.array([float(s["dec"]) for s in rows], dtype=float)

    def select(self, ralo: float, rahi: float, declo: float, dechi: float) -> List[Dict[str, Any]]:
        """Inclusive box query; returns the matching star rows in catalogue order."""
        mask = (self._ra >= ralo) & (self._ra <= rahi) & (self._dec >= declo) & (self._dec <= dechi)
        return [self._rows[i] for i in np.flatnonzero(mask)]

    def get_points(self, region: NativeRegion) -> List[PointRecord]:
        _require_equatorial(region)
        rows = self.select(*region.bounds)
        return [PointRecord(name=str(s["name"]), coordinate=Equatorial(float(s["ra"]), float(s["dec"]))) for s in rows]

    async def fetch_points_in_region(self, map_key: str, region: NativeRegion) -> List[PointRecord]:
        return self.get_points(region)
