from __future__ import annotations

from typing import Optional


class FetchFailure(Exception):
    """
    An external fetch failed (network, HTTP status, or unparseable body).
    Never fatal: callers degrade to a status message.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
