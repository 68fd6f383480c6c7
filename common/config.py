from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


DEFAULT_CONFIG_PATH = "config/params.yaml"

_DEFAULTS: Dict[str, Any] = {
    "backend": {
        "base_url": "https://stellar-resolution.onrender.com",
        "stars_url": "http://localhost:3001/api/stars",
        "timeout_s": 10.0,
    },
    "viewport": {"debounce_ms": 500},
    "overlays": {
        "dot_zoom": 5.0,
        "label_zoom": 10.0,
        "fetch_timeout_s": 10.0,
    },
    "placement": {"default_zoom": 0.7},
    "maps": {"extra_path": None},
    "logging": {"level": "INFO"},
}


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the YAML parameter file and merge it over the built-in defaults.
    A missing file is not an error: defaults are returned.
    """
    p = Path(path or os.environ.get("STELLAR_CONFIG") or DEFAULT_CONFIG_PATH)
    if not p.exists():
        return copy.deepcopy(_DEFAULTS)
    with p.open("r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{p}: top-level YAML must be a mapping")
    return _deep_merge(_DEFAULTS, data)


@dataclass(slots=True)
class Settings:
    """Typed view over the parameter file."""
    backend_url: str
    stars_url: str
    request_timeout_s: float
    debounce_s: float
    dot_zoom: float
    label_zoom: float
    fetch_timeout_s: float
    default_zoom: float
    maps_path: Optional[str]
    log_level: str

    def __post_init__(self) -> None:
        if self.debounce_s < 0:
            raise ValueError("debounce must be >= 0")
        if self.label_zoom < self.dot_zoom:
            raise ValueError("label_zoom must be >= dot_zoom")
        if self.fetch_timeout_s <= 0:
            raise ValueError("fetch_timeout_s must be > 0")

    @classmethod
    def from_dict(cls, P: Mapping[str, Any]) -> "Settings":
        backend = P.get("backend", {})
        return cls(
            # env var wins so deployments can repoint without editing YAML
            backend_url=str(os.environ.get("STELLAR_BACKEND_URL") or backend.get("base_url")).rstrip("/"),
            stars_url=str(backend.get("stars_url")),
            request_timeout_s=float(backend.get("timeout_s", 10.0)),
            debounce_s=float(P.get("viewport", {}).get("debounce_ms", 500)) / 1000.0,
            dot_zoom=float(P.get("overlays", {}).get("dot_zoom", 5.0)),
            label_zoom=float(P.get("overlays", {}).get("label_zoom", 10.0)),
            fetch_timeout_s=float(P.get("overlays", {}).get("fetch_timeout_s", 10.0)),
            default_zoom=float(P.get("placement", {}).get("default_zoom", 0.7)),
            maps_path=P.get("maps", {}).get("extra_path"),
            log_level=str(P.get("logging", {}).get("level", "INFO")),
        )


def load_settings(path: Optional[str] = None) -> Settings:
    return Settings.from_dict(load_config(path))
