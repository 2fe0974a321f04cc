"""Integration test fixtures.

Provides the FastAPI app wired with an in-memory SQLite cache and a real
httpx client (mock upstream responses with respx), plus an ASGI test client.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import httpx
import pytest

from npmx.api.registry_files import build_files_handler
from npmx.cache import Cache
from npmx.config import Settings
from npmx.fetcher import JsDelivrFetcher
from npmx.models.build import AppConfig, BuildInfo
from npmx.server import create_app
from npmx.state import AppState

BUILD_INFO = BuildInfo(
    version="0.1.0",
    time=1_700_000_000_000,
    commit="0123456789abcdef0123456789abcdef01234567",
    short_commit="0123456",
    branch="main",
    env="canary",
    privacy_policy_date="2025-03-01T12:00:00+00:00",
)


@pytest.fixture()
async def app_state() -> AppState:
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()

        async with httpx.AsyncClient() as client:
            settings = Settings()
            fetcher = JsDelivrFetcher(client, settings.upstream)
            yield AppState(
                settings=settings,
                app_config=AppConfig(
                    env="canary",
                    build_info=BUILD_INFO,
                    public_asset_dirs=(Path("public-staging"), Path("public")),
                ),
                http_client=client,
                cache=cache,
                fetcher=fetcher,
                files_handler=build_files_handler(
                    fetcher, cache, settings.cache.max_age_seconds
                ),
            )


@pytest.fixture()
async def api(app_state: AppState) -> httpx.AsyncClient:
    app = create_app(app_state.settings, state=app_state)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://npmx.test") as client:
        yield client
