"""Stale-while-revalidate caching around plain async handlers.

``cached_handler`` composes a cache lookup around a handler that maps a
request parameter to a pydantic model. The wrapper returns the
serialized body, so a cache hit never rebuilds the model.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import structlog

if TYPE_CHECKING:
    from pydantic import BaseModel

    from npmx.cache import Cache

log = structlog.get_logger()

CacheStatus = Literal["HIT", "STALE", "MISS"]


@dataclass(frozen=True)
class CachedBody:
    body: str  # Serialized JSON
    status: CacheStatus


Handler = Callable[[str], Awaitable["BaseModel"]]


def serialize(model: BaseModel) -> str:
    return model.model_dump_json(exclude_none=True, by_alias=True)


class CachedHandler:
    """Response cache wrapped around ``handler``.

    Fresh entries are served directly. With ``swr`` a stale entry is served
    immediately while one background task per key refreshes it. Misses (and
    stale entries without ``swr``) run the handler inline. Handler errors
    propagate and are never cached.

    ``aclose()`` must run before the cache connection closes: it waits for
    in-flight refreshes and stops scheduling new ones.
    """

    def __init__(
        self,
        handler: Handler,
        *,
        cache: Cache,
        max_age: int,
        get_key: Callable[[str], str],
        swr: bool = True,
    ) -> None:
        self._handler = handler
        self._cache = cache
        self._max_age = max_age
        self._get_key = get_key
        self._swr = swr
        self._revalidating: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    @property
    def pending(self) -> tuple[asyncio.Task[None], ...]:
        """Background refreshes still running."""
        return tuple(self._revalidating.values())

    async def __call__(self, param: str) -> CachedBody:
        key = self._get_key(param)
        entry = await self._cache.get(key)

        if entry is not None and not entry.stale:
            return CachedBody(body=entry.body, status="HIT")

        if entry is not None and self._swr:
            if not self._closed and key not in self._revalidating:
                self._revalidating[key] = asyncio.create_task(self._revalidate(key, param))
            return CachedBody(body=entry.body, status="STALE")

        body = await self._fetch_and_store(key, param)
        return CachedBody(body=body, status="MISS")

    async def aclose(self) -> None:
        self._closed = True
        while self._revalidating:
            await asyncio.gather(*self.pending, return_exceptions=True)

    async def _fetch_and_store(self, key: str, param: str) -> str:
        body = serialize(await self._handler(param))
        await self._cache.set(key, body, self._max_age)
        return body

    async def _revalidate(self, key: str, param: str) -> None:
        try:
            await self._fetch_and_store(key, param)
            log.info("cache_revalidated", key=key)
        except Exception:
            # The stale entry stays in place and is retried on the next request.
            log.warning("cache_revalidate_failed", key=key, exc_info=True)
        finally:
            self._revalidating.pop(key, None)


def cached_handler(
    handler: Handler,
    *,
    cache: Cache,
    max_age: int,
    get_key: Callable[[str], str],
    swr: bool = True,
) -> CachedHandler:
    """Compose a cache lookup around ``handler``."""
    return CachedHandler(handler, cache=cache, max_age=max_age, get_key=get_key, swr=swr)
