"""FastAPI application and entry point.

Startup order (lifespan):
  1. Resolve build info → immutable AppConfig (fatal on failure)
  2. Open the SQLite cache, create tables, purge long-expired entries
  3. Create the shared httpx client and the jsDelivr fetcher
  4. Mount static assets for the resolved environment
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from npmx import __version__
from npmx.api.build_info import router as build_info_router
from npmx.api.registry_files import build_files_handler
from npmx.api.registry_files import router as registry_files_router
from npmx.build_env import resolve_app_config
from npmx.cache import Cache
from npmx.config import Settings
from npmx.errors import NpmxError
from npmx.fetcher import JsDelivrFetcher, build_http_client
from npmx.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from npmx.config import LoggingSettings

log = structlog.get_logger()


def configure_logging(settings: LoggingSettings) -> None:
    """Route structlog output to stderr as JSON or console text."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.format == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


class PublicAssets(StaticFiles):
    """Static files served from several directories, first match wins."""

    def __init__(self, directories: Sequence[Path]) -> None:
        super().__init__(check_dir=False)
        self.all_directories = [str(d) for d in directories]


def mount_public_assets(app: FastAPI, directories: Sequence[Path]) -> None:
    existing = [d for d in directories if d.is_dir()]
    if not existing:
        log.info("public_assets_skipped", reason="no directories found")
        return
    app.mount("/", PublicAssets(existing), name="public")


async def npmx_error_handler(request: Request, exc: NpmxError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Settings | None = None, state: AppState | None = None) -> FastAPI:
    """Build the application.

    Passing ``state`` skips component wiring in the lifespan; tests use it to
    inject in-memory caches and mocked HTTP clients.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if state is not None:
            yield
            return

        app_config = await resolve_app_config(settings)

        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(db_path) as db, build_http_client(
            settings.upstream
        ) as client:
            cache = Cache(db)
            await cache.init_db()
            await cache.cleanup_expired()

            fetcher = JsDelivrFetcher(client, settings.upstream)
            files_handler = build_files_handler(fetcher, cache, settings.cache.max_age_seconds)
            app.state.npmx = AppState(
                settings=settings,
                app_config=app_config,
                http_client=client,
                cache=cache,
                fetcher=fetcher,
                files_handler=files_handler,
            )
            mount_public_assets(app, app_config.public_asset_dirs)
            log.info("server_started", env=app_config.env, db_path=str(db_path))
            try:
                yield
            finally:
                # Background refreshes need the client and db, which close below.
                await files_handler.aclose()
                log.info("server_stopped")

    app = FastAPI(title="npmx", version=__version__, lifespan=lifespan)
    if state is not None:
        app.state.npmx = state
    app.add_exception_handler(NpmxError, npmx_error_handler)  # type: ignore[arg-type]

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(build_info_router)
    app.include_router(registry_files_router)
    return app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="npmx-server")
    parser.add_argument("--dev", action="store_true", help="run in development mode")
    args = parser.parse_args(argv)

    settings = Settings()
    if args.dev:
        settings = settings.model_copy(
            update={"server": settings.server.model_copy(update={"dev": True})}
        )
    configure_logging(settings.logging)

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
