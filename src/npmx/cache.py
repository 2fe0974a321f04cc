"""SQLite response cache backing the cached API handlers.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write failures are logged and ignored (the fresh response is still served).
Infrastructure errors never cross the Cache class boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import structlog

if TYPE_CHECKING:
    from npmx.models.cache import ResponseCacheEntry

log = structlog.get_logger()

_CREATE_RESPONSE_TABLE = """
CREATE TABLE IF NOT EXISTS response_cache (
    key         TEXT PRIMARY KEY,
    body        TEXT NOT NULL,
    fetched_at  TEXT NOT NULL,
    expires_at  TEXT NOT NULL
)
"""

_CREATE_RESPONSE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_response_expires ON response_cache(expires_at)"
)

# Expired entries are kept this long so stale-while-revalidate can still serve them.
CLEANUP_GRACE = timedelta(days=7)


class Cache:
    """SQLite-backed store of serialized handler responses."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_RESPONSE_TABLE)
        await self._db.execute(_CREATE_RESPONSE_INDEX)
        await self._db.commit()

    async def get(self, key: str) -> ResponseCacheEntry | None:
        """Read an entry. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT key, body, fetched_at, expires_at FROM response_cache WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            from npmx.models.cache import ResponseCacheEntry

            fetched_at = datetime.fromisoformat(row[2])
            expires_at = datetime.fromisoformat(row[3])
            stale = datetime.now(UTC) > expires_at

            return ResponseCacheEntry(
                key=row[0],
                body=row[1],
                fetched_at=fetched_at,
                expires_at=expires_at,
                stale=stale,
            )
        except aiosqlite.Error:
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

    async def set(self, key: str, body: str, ttl_seconds: int) -> None:
        """Write an entry. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(seconds=ttl_seconds)
            await self._db.execute(
                "INSERT OR REPLACE INTO response_cache "
                "(key, body, fetched_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (key, body, now.isoformat(), expires_at.isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=key, exc_info=True)

    async def cleanup_expired(self) -> None:
        """Delete entries expired more than 7 days ago. Non-fatal on failure."""
        try:
            cutoff = (datetime.now(UTC) - CLEANUP_GRACE).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM response_cache WHERE expires_at < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
