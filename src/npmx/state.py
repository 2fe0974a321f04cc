"""Process-wide application state, built once in the server lifespan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    import httpx

    from npmx.cache import Cache
    from npmx.cached_handler import CachedHandler
    from npmx.config import Settings
    from npmx.fetcher import JsDelivrFetcher
    from npmx.models.build import AppConfig


@dataclass
class AppState:
    settings: Settings
    app_config: AppConfig
    http_client: httpx.AsyncClient
    cache: Cache
    fetcher: JsDelivrFetcher
    files_handler: CachedHandler


def get_state(request: Request) -> AppState:
    """FastAPI dependency returning the state attached by the lifespan."""
    return request.app.state.npmx
