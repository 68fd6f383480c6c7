from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional


_CONFIGURED_FLAG = "_stellar_configured"


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": 1712345678901, "lvl": "INFO", "name": "overlay.sync", "msg": "text", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload["extra"] = extra
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # default=str: coordinates/enums in extra must never break logging
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Configure the root logger once.
    Level precedence: explicit `level`, then env STELLAR_LOG_LEVEL, then INFO.
    """
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG, False) and not force:
        return

    lvl_name = (level or os.environ.get("STELLAR_LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(lvl_name)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
    setattr(root, _CONFIGURED_FLAG, True)


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the root on first use."""
    setup_logging()
    return logging.getLogger(name)


def ctx(**fields: Any) -> Dict[str, Any]:
    """Shorthand for `extra={"extra": {...}}` structured context."""
    return {"extra": fields}
