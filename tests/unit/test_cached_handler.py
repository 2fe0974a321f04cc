"""Unit tests for npmx.cached_handler."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from pydantic import BaseModel

from npmx.cached_handler import cached_handler

if TYPE_CHECKING:
    from npmx.cache import Cache


class Payload(BaseModel):
    value: str
    optional: str | None = None


class CountingHandler:
    """Handler double that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls = 0
        self.fail = False

    async def __call__(self, param: str) -> Payload:
        self.calls += 1
        if self.fail:
            raise RuntimeError("upstream down")
        return Payload(value=f"{param}#{self.calls}")


def _key(param: str) -> str:
    return f"test:v1:{param}"


async def _expire(cache: Cache, key: str) -> None:
    past = (datetime.now(UTC) - timedelta(hours=1)).isoformat()
    await cache._db.execute(
        "UPDATE response_cache SET expires_at = ? WHERE key = ?", (past, key)
    )
    await cache._db.commit()


async def _drain(wrapped) -> None:
    await asyncio.gather(*wrapped.pending)


class TestCachedHandler:
    async def test_miss_runs_handler_and_stores(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)

        result = await wrapped("a")

        assert result.status == "MISS"
        assert json.loads(result.body) == {"value": "a#1"}
        entry = await cache.get("test:v1:a")
        assert entry is not None
        assert entry.body == result.body

    async def test_none_fields_are_omitted(self, cache: Cache) -> None:
        wrapped = cached_handler(CountingHandler(), cache=cache, max_age=3600, get_key=_key)
        result = await wrapped("a")
        assert "optional" not in json.loads(result.body)

    async def test_fresh_hit_skips_handler(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)

        await wrapped("a")
        result = await wrapped("a")

        assert result.status == "HIT"
        assert json.loads(result.body) == {"value": "a#1"}
        assert handler.calls == 1

    async def test_stale_served_then_revalidated(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        result = await wrapped("a")
        assert result.status == "STALE"
        assert json.loads(result.body) == {"value": "a#1"}

        await _drain(wrapped)
        entry = await cache.get("test:v1:a")
        assert entry is not None
        assert entry.stale is False
        assert json.loads(entry.body) == {"value": "a#2"}

    async def test_single_revalidation_per_key(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        results = await asyncio.gather(wrapped("a"), wrapped("a"), wrapped("a"))
        await _drain(wrapped)

        assert {r.status for r in results} == {"STALE"}
        assert handler.calls == 2

    async def test_failed_revalidation_keeps_stale_entry(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        handler.fail = True
        result = await wrapped("a")
        await _drain(wrapped)

        assert result.status == "STALE"
        entry = await cache.get("test:v1:a")
        assert entry is not None
        assert entry.stale is True
        assert json.loads(entry.body) == {"value": "a#1"}
        assert wrapped.pending == ()

    async def test_stale_without_swr_refetches_inline(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key, swr=False)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        result = await wrapped("a")

        assert result.status == "MISS"
        assert json.loads(result.body) == {"value": "a#2"}

    async def test_errors_propagate_and_are_not_cached(self, cache: Cache) -> None:
        handler = CountingHandler()
        handler.fail = True
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)

        with pytest.raises(RuntimeError):
            await wrapped("a")
        assert await cache.get("test:v1:a") is None

        handler.fail = False
        result = await wrapped("a")
        assert result.status == "MISS"


class GatedHandler(CountingHandler):
    """Handler double that blocks until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self, param: str) -> Payload:
        await self.release.wait()
        return await super().__call__(param)


class TestCachedHandlerClose:
    async def test_aclose_waits_for_in_flight_revalidation(self, cache: Cache) -> None:
        handler = GatedHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        handler.release.clear()
        assert (await wrapped("a")).status == "STALE"
        assert len(wrapped.pending) == 1

        closing = asyncio.create_task(wrapped.aclose())
        await asyncio.sleep(0)
        assert not closing.done()

        handler.release.set()
        await closing

        assert wrapped.pending == ()
        entry = await cache.get("test:v1:a")
        assert entry is not None
        assert entry.stale is False
        assert json.loads(entry.body) == {"value": "a#2"}

    async def test_no_revalidation_scheduled_after_close(self, cache: Cache) -> None:
        handler = CountingHandler()
        wrapped = cached_handler(handler, cache=cache, max_age=3600, get_key=_key)
        await wrapped("a")
        await _expire(cache, "test:v1:a")

        await wrapped.aclose()
        result = await wrapped("a")

        assert result.status == "STALE"
        assert wrapped.pending == ()
        assert handler.calls == 1

    async def test_aclose_with_nothing_pending(self, cache: Cache) -> None:
        wrapped = cached_handler(CountingHandler(), cache=cache, max_age=3600, get_key=_key)
        await wrapped.aclose()
        assert wrapped.pending == ()
