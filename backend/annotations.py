"""
Client for the annotation document store (per-map CRUD over HTTP).

Routes (relative to the backend base URL):
    GET    /{map}/getLabels
    POST   /{map}/addLabel
    POST   /{map}/updateLabel/{id}
    DELETE /{map}/deleteLabel/{id}

Documents are W3C Web Annotations as produced by the image annotator; we keep
the full document in AnnotationRecord.raw and lift out id / label / selector.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import requests

from backend.errors import FetchFailure
from common.types import AnnotationRecord


log = logging.getLogger(__name__)


def validate_annotation_id(annotation_id: Any) -> str:
    """Ids become a single path segment: non-empty and no '/'."""
    s = "" if annotation_id is None else str(annotation_id)
    if not s:
        raise ValueError("annotation id must not be empty")
    if "/" in s:
        raise ValueError(f"annotation id must not contain '/': {s!r}")
    return s


def record_from_document(doc: Mapping[str, Any]) -> AnnotationRecord:
    label = ""
    body = doc.get("body")
    if isinstance(body, list) and body:
        first = body[0]
        if isinstance(first, Mapping):
            label = str(first.get("value", ""))
    elif isinstance(body, Mapping):
        label = str(body.get("value", ""))
    label = str(doc.get("label", label))

    geometry: Mapping[str, Any] = {}
    target = doc.get("target")
    if isinstance(target, Mapping) and isinstance(target.get("selector"), Mapping):
        geometry = target["selector"]

    return AnnotationRecord(id=str(doc.get("id", "")), label=label, geometry=dict(geometry), raw=dict(doc))


class AnnotationStore:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10.0):
        if not base_url:
            raise ValueError("base_url is required for AnnotationStore")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = float(timeout)

    def _url(self, map_key: str, action: str, annotation_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{quote(map_key, safe='')}/{action}"
        if annotation_id is not None:
            url += "/" + quote(annotation_id, safe="")
        return url

    def _send(self, method: str, url: str, payload: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailure(f"{method} {url} failed: {e}") from e
        if not 200 <= r.status_code < 300:
            log.warning("Annotation store %s %s -> %s %s", method, url, r.status_code, r.text[:200])
            raise FetchFailure(f"annotation store returned {r.status_code}", status_code=r.status_code, body=r.text[:500])
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise FetchFailure("annotation store returned non-JSON", body=r.text[:500]) from e

    # ----------------------------
    # Public API
    # ----------------------------
    def fetch_annotations(self, map_key: str) -> List[AnnotationRecord]:
        data = self._send("GET", self._url(map_key, "getLabels"))
        if data is None:
            return []
        if isinstance(data, Mapping):
            # keyed document store: {id: doc}
            data = [dict(v, id=v.get("id", k)) for k, v in data.items() if isinstance(v, Mapping)]
        if not isinstance(data, list):
            raise FetchFailure("getLabels returned neither a list nor a mapping")
        return [record_from_document(d) for d in data if isinstance(d, Mapping)]

    def create_annotation(self, map_key: str, record: AnnotationRecord) -> str:
        """Persist a new label; returns the id assigned by the store (or the record's own)."""
        if record.id:
            validate_annotation_id(record.id)
        data = self._send("POST", self._url(map_key, "addLabel"), record.to_document())
        new_id = data.get("id") if isinstance(data, Mapping) else None
        return validate_annotation_id(new_id or record.id)

    def update_annotation(self, map_key: str, annotation_id: str, record: AnnotationRecord) -> None:
        aid = validate_annotation_id(annotation_id)
        self._send("POST", self._url(map_key, "updateLabel", aid), record.to_document())

    def delete_annotation(self, map_key: str, annotation_id: str) -> None:
        aid = validate_annotation_id(annotation_id)
        self._send("DELETE", self._url(map_key, "deleteLabel", aid))
