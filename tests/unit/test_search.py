"""
Unit tests for the search / analysis client
"""

import os
import sys
from unittest.mock import Mock

import pytest
import requests

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from backend.errors import FetchFailure
from backend.search import SearchClient, normalize_confidence, parse_llm_json, strip_code_fences
from common.types import Equatorial, Pixel, Planetary, UnitPoint, ViewportSnapshot


def response(status=200, payload=None, text=None):
    r = Mock()
    r.status_code = status
    if payload is None:
        r.json.side_effect = ValueError("not json")
        r.text = text or ""
    else:
        r.json.return_value = payload
        r.text = text if text is not None else str(payload)
    return r


class TestLenientParsing:
    """LLM-ish replies"""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences("plain") == "plain"

    def test_parse_fenced(self):
        assert parse_llm_json('```json\n{"found": true}\n```') == {"found": True}

    def test_parse_embedded_object(self):
        assert parse_llm_json('Sure! Here it is: {"found": false} hope this helps') == {"found": False}

    @pytest.mark.parametrize("text", ["", "   ", "no braces here", "[1, 2]", None, 12])
    def test_parse_nothing(self, text):
        assert parse_llm_json(text) is None

    @pytest.mark.parametrize("raw,expected", [
        (0.85, 0.85),
        (85, 0.85),
        (100, 1.0),
        (1, 1.0),
        (150, 1.0),
        (-2, 0.0),
        ("0.4", 0.4),
        ("high", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
    ])
    def test_normalize_confidence(self, raw, expected):
        assert normalize_confidence(raw) == pytest.approx(expected)


class TestSearchClient:
    """search_location / analyze_viewport"""

    def setup_method(self):
        self.session = Mock()
        self.client = SearchClient("https://search.example/", session=self.session, timeout=5)

    def test_found_planetary(self):
        self.session.post.return_value = response(payload={
            "found": True,
            "coordinates": {"x": 0.1, "y": 0.4},
            "raw_coordinates": {"longitude": -133.8, "latitude": 18.65},
            "description": "Olympus Mons",
            "confidence": 92,
            "zoom_level": 6,
        })
        res = self.client.search_location("mars", "biggest volcano")
        assert res.found
        assert res.coordinate == Planetary(-133.8, 18.65)
        assert res.confidence == pytest.approx(0.92)
        assert res.zoom_hint == 6
        url = self.session.post.call_args[0][0]
        assert url == "https://search.example/search"
        assert self.session.post.call_args[1]["json"] == {"query": "biggest volcano", "mapType": "mars"}

    def test_native_coordinates_without_raw(self):
        self.session.post.return_value = response(payload={
            "found": True, "coordinates": {"ra": 83.8, "dec": -5.4}, "description": "Orion", "confidence": 0.9,
        })
        res = self.client.search_location("unwise", "orion")
        assert res.coordinate == Equatorial(83.8, -5.4)
        assert res.zoom_hint is None

    def test_context_uses_contextual_route(self):
        self.session.post.return_value = response(payload={
            "found": True, "raw_coordinates": {"x": 25000, "y": 8000}, "description": "arm", "context_used": True,
        })
        ctx = {"imageAnalysis": {"features": []}, "currentView": {"zoom": 3}, "ignored": 1}
        res = self.client.search_location("andromeda", "spiral arm", context=ctx)
        assert res.coordinate == Pixel(25000, 8000)
        assert res.context_used is True
        url = self.session.post.call_args[0][0]
        payload = self.session.post.call_args[1]["json"]
        assert url.endswith("/search-with-context")
        assert "ignored" not in payload
        assert payload["currentView"] == {"zoom": 3}

    def test_not_found(self):
        self.session.post.return_value = response(payload={"found": False, "message": "No match", "confidence": 10})
        res = self.client.search_location("mars", "atlantis")
        assert not res.found
        assert res.description == "No match"
        assert res.confidence == pytest.approx(0.1)

    def test_raw_response_passthrough(self):
        self.session.post.return_value = response(status=500, payload={"error": "Failed to parse AI response", "raw_response": "I think it's near..."})
        res = self.client.search_location("mars", "x")
        assert not res.found
        assert res.raw_text == "I think it's near..."

    def test_malformed_body(self):
        self.session.post.return_value = response(payload=None, text="totally not json")
        res = self.client.search_location("mars", "x")
        assert not res.found
        assert res.raw_text == "totally not json"

    def test_fenced_body_is_parsed(self):
        body = '```json\n{"found": true, "raw_coordinates": {"longitude": 70, "latitude": -42.4}, "description": "Hellas"}\n```'
        self.session.post.return_value = response(payload=None, text=body)
        res = self.client.search_location("mars", "hellas")
        assert res.found and res.coordinate == Planetary(70.0, -42.4)

    def test_unusable_coordinates(self):
        self.session.post.return_value = response(payload={"found": True, "coordinates": {"lat": 1}})
        res = self.client.search_location("mars", "x")
        assert not res.found
        assert res.raw_text

    def test_pixel_map_ignores_viewer_space_coordinates(self):
        # normalized viewer x/y must not be read as image pixels
        self.session.post.return_value = response(payload={"found": True, "coordinates": {"x": 0.5, "y": 0.5}})
        res = self.client.search_location("andromeda", "core")
        assert not res.found
        assert res.coordinate is None
        assert "no usable coordinates" in res.description

    def test_pixel_map_prefers_raw_coordinates(self):
        self.session.post.return_value = response(payload={
            "found": True, "coordinates": {"x": 0.5, "y": 0.5}, "raw_coordinates": {"x": 20000, "y": 10000},
        })
        res = self.client.search_location("andromeda", "core")
        assert res.coordinate == Pixel(20000, 10000)

    def test_unknown_map(self):
        self.session.post.return_value = response(payload={"found": True, "coordinates": {"x": 1, "y": 2}})
        res = self.client.search_location("venus", "x")
        assert not res.found
        assert "venus" in res.description

    def test_http_error_without_body(self):
        self.session.post.return_value = response(status=502, payload=None, text="Bad gateway")
        with pytest.raises(FetchFailure) as exc:
            self.client.search_location("mars", "x")
        assert exc.value.status_code == 502

    def test_network_error(self):
        self.session.post.side_effect = requests.ConnectionError("down")
        with pytest.raises(FetchFailure):
            self.client.search_location("mars", "x")

    def test_analyze_viewport(self):
        self.session.post.return_value = response(payload={"analysis": {
            "analysis": "Dusty region",
            "features": ["dust lane"],
            "notable_objects": ["M31 core"],
            "confidence": 70,
            "nearby_known_objects": ["dust lanes"],
        }})
        snap = ViewportSnapshot(center=UnitPoint(0.4, 0.45), width=0.2, height=0.1, zoom=4)
        res = self.client.analyze_viewport("andromeda", snap, "what is this?")
        assert res.analysis == "Dusty region"
        assert res.features == ("dust lane",)
        assert res.confidence == pytest.approx(0.7)
        payload = self.session.post.call_args[1]["json"]
        assert payload["viewportData"]["viewport"]["bounds"]["x"] == pytest.approx(0.3)
        assert payload["query"] == "what is this?"
        assert self.session.post.call_args[0][0].endswith("/analyze-viewport")

    def test_analyze_plain_text(self):
        self.session.post.return_value = response(payload=None, text="```\nJust stars.\n```")
        res = SearchClient.parse_analysis_response(None, "```\nJust stars.\n```")
        assert res.analysis == "Just stars."
        assert res.raw_text is not None
