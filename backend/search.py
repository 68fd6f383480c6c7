"""
Client for the natural-language search / viewport-analysis service.

The service itself is a black box; this module only turns its replies into
SearchResult / AnalysisResult. A malformed reply never raises: it becomes a
found=False result carrying the raw text. Network and HTTP failures without a
usable body raise FetchFailure.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, Mapping, Optional

import requests

from backend.errors import FetchFailure
from common.types import AnalysisResult, MapKind, SearchResult, ViewportSnapshot, native_from_dict
from maps.registry import MapRegistry


log = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```$")


def strip_code_fences(text: str) -> str:
    t = _FENCE_OPEN.sub("", text.strip())
    return _FENCE_CLOSE.sub("", t).strip()


def parse_llm_json(text: Any) -> Optional[Dict[str, Any]]:
    """
    Lenient JSON object extraction: strip ``` fences, try a full parse, then
    the outermost {...} block. Returns None when nothing parses to an object.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    t = strip_code_fences(text)
    candidates = [t]
    start, end = t.find("{"), t.rfind("}")
    if start != -1 and end > start:
        candidates.append(t[start : end + 1])
    for c in candidates:
        try:
            obj = json.loads(c)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def normalize_confidence(value: Any) -> float:
    """Scale 0..100 percentages down to 0..1 and clamp; junk becomes 0."""
    try:
        c = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(c):
        return 0.0
    if 1.0 < c <= 100.0:
        c /= 100.0
    return min(1.0, max(0.0, c))


def _zoom_hint(value: Any) -> Optional[float]:
    try:
        z = float(value)
    except (TypeError, ValueError):
        return None
    return z if math.isfinite(z) and z > 0 else None


def _str_tuple(value: Any) -> tuple:
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return ()


class SearchClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        registry: Optional[MapRegistry] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required for SearchClient")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.registry = registry or MapRegistry.default()

    def _post(self, route: str, payload: Mapping[str, Any]) -> tuple[Optional[Dict[str, Any]], str, int]:
        """POST and return (parsed_object_or_None, raw_text, status)."""
        url = f"{self.base_url}{route}"
        try:
            r = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailure(f"POST {route} failed: {e}") from e
        text = r.text or ""
        try:
            data = r.json()
        except ValueError:
            data = parse_llm_json(text)
        if not isinstance(data, dict):
            data = None
        if r.status_code >= 400 and (data is None or "raw_response" not in data):
            log.warning("Search service %s -> %s %s", route, r.status_code, text[:200])
            raise FetchFailure(f"{route} returned {r.status_code}", status_code=r.status_code, body=text[:500])
        return data, text, r.status_code

    # ----------------------------
    # Search
    # ----------------------------
    def search_location(
        self,
        map_key: str,
        query: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> SearchResult:
        """
        Ask the service where `query` is on `map_key`.

        context (optional) may carry "imageAnalysis" and/or "currentView"; when
        present the contextual endpoint is used.
        """
        payload: Dict[str, Any] = {"query": query, "mapType": map_key}
        route = "/search"
        if context:
            route = "/search-with-context"
            payload.update({k: v for k, v in context.items() if k in ("imageAnalysis", "currentView")})

        data, text, _ = self._post(route, payload)
        return self.parse_search_response(map_key, data, text)

    def parse_search_response(self, map_key: str, data: Optional[Mapping[str, Any]], text: str = "") -> SearchResult:
        if data is None:
            log.warning("Search reply was not JSON", extra={"extra": {"map": map_key, "raw": text[:200]}})
            return SearchResult(found=False, description="Malformed response from search service", raw_text=text)
        if "raw_response" in data:
            # service-side LLM reply was not JSON; surface it for diagnostics
            return SearchResult(found=False, description=str(data.get("error", "Malformed response")), raw_text=str(data["raw_response"]))

        confidence = normalize_confidence(data.get("confidence"))
        if not data.get("found"):
            msg = data.get("message") or data.get("description") or "Location not found"
            return SearchResult(found=False, description=str(msg), confidence=confidence)

        desc = self.registry.describe(map_key)
        if desc is None:
            return SearchResult(found=False, description=f"Unsupported map type: {map_key}", raw_text=text or None)

        # raw_coordinates are always native. "coordinates" is only native for
        # ra/dec and lon/lat; on pixel maps it holds viewer-space x/y.
        keys = ("raw_coordinates",) if desc.kind is MapKind.PIXEL_IMAGE else ("raw_coordinates", "coordinates")
        coordinate = None
        for key in keys:
            obj = data.get(key)
            if isinstance(obj, Mapping):
                try:
                    coordinate = native_from_dict(desc.kind, obj)
                    break
                except ValueError:
                    continue
        if coordinate is None:
            return SearchResult(
                found=False,
                description="Search reply carried no usable coordinates",
                confidence=confidence,
                raw_text=text or json.dumps(data),
            )
        return SearchResult(
            found=True,
            coordinate=coordinate,
            description=str(data.get("description", "")),
            confidence=confidence,
            zoom_hint=_zoom_hint(data.get("zoom_level")),
            context_used=data.get("context_used"),
        )

    # ----------------------------
    # Viewport analysis
    # ----------------------------
    def analyze_viewport(self, map_key: str, snapshot: ViewportSnapshot, query: str = "") -> AnalysisResult:
        payload = {"viewportData": {"viewport": snapshot.to_dict()}, "mapType": map_key, "query": query}
        data, text, _ = self._post("/analyze-viewport", payload)
        return self.parse_analysis_response(data, text)

    @staticmethod
    def parse_analysis_response(data: Optional[Mapping[str, Any]], text: str = "") -> AnalysisResult:
        if data is None:
            return AnalysisResult(analysis=strip_code_fences(text), raw_text=text)
        a = data.get("analysis", data)
        if not isinstance(a, Mapping):
            return AnalysisResult(analysis=str(a), raw_text=text or None)
        return AnalysisResult(
            analysis=str(a.get("analysis", "")),
            features=_str_tuple(a.get("features")),
            notable_objects=_str_tuple(a.get("notable_objects")),
            scale_estimate=str(a.get("scale_estimate", "")),
            query_response=str(a.get("query_response", "")),
            confidence=normalize_confidence(a.get("confidence")),
            nearby_known_objects=_str_tuple(a.get("nearby_known_objects")),
        )
