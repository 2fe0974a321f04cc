from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ResponseCacheEntry(BaseModel):
    """Cached serialized response body for a handler key."""

    key: str  # Namespaced, e.g. "files:v2:react/v/18.2.0"
    body: str  # Serialized JSON
    fetched_at: datetime
    expires_at: datetime
    stale: bool = False
