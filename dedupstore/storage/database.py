"""
SQLite Key-Value Store with Expiry

Design Decision: Why SQLite?
============================

Options Considered:
1. SQLite - Embedded, no server, ACID compliant
2. Redis - Native TTL and SCAN, but another server to run
3. JSON files - Simple, but no atomic updates
4. PostgreSQL/MySQL - Overkill, requires server

Decision: SQLite with aiosqlite, used as an expiring key-value store
- Zero configuration, single file, easy to backup
- Async support via aiosqlite
- GLOB gives glob-style key patterns (file:*:hash)
- rowid gives a stable, resumable scan cursor

Expiry:
- Each key carries an optional absolute expires_at (unix seconds)
- Expired keys read as absent and are removed lazily on access
- purge_expired() evicts them physically (run on connect)

Scanning:
- scan(cursor, match, count) examines at most `count` rows after `cursor`
  and returns (next_cursor, matching_keys)
- next_cursor == 0 means the scan is complete
- Keys written or deleted during a scan are tolerated; callers keep
  iterating from the returned cursor
"""

import logging
import time
from pathlib import Path
from typing import Optional, List, Tuple

import aiosqlite

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

# Default number of rows examined per scan batch
SCAN_BATCH_SIZE = 100


class KeyValueStore:
    """
    Durable string key-value store with per-key time-to-live.

    Stores:
    - File records (file:{id}:hash, file:{id}:filename)
    - The dedup filter snapshot
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self):
        """Open database connection."""
        if self._connection is not None:
            return

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            # Initialize schema
            await self._init_schema()
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Error connecting to database {self.db_path}: {e}")
            raise PersistenceError(f"Cannot open database {self.db_path}") from e

        logger.info(f"Database connected: {self.db_path}")

        purged = await self.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired keys")

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _init_schema(self):
        """Initialize database schema."""
        await self._connection.executescript("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL
            );

            CREATE INDEX IF NOT EXISTS idx_kv_expires_at ON kv(expires_at);
        """)

        await self._connection.commit()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise PersistenceError("Database is not connected")
        return self._connection

    @staticmethod
    def _is_expired(expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and expires_at <= now

    # === Single Keys ===

    async def set(self, key: str, value: str, ttl: Optional[int] = None):
        """
        Set a key, replacing any previous value and expiry.

        Args:
            ttl: Seconds until the key expires (None = never)
        """
        conn = self._require_connection()
        expires_at = time.time() + ttl if ttl is not None else None

        try:
            await conn.execute(
                """INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = ?, expires_at = ?""",
                (key, value, expires_at, value, expires_at)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error(f"Error setting value of key {key}: {e}")
            raise PersistenceError(f"Cannot set key {key}") from e

    async def get(self, key: str) -> Optional[str]:
        """Get a value, or None if the key is absent or expired."""
        conn = self._require_connection()

        try:
            async with conn.execute(
                "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"Error getting value of key {key}: {e}")
            raise PersistenceError(f"Cannot get key {key}") from e

        if row is None:
            return None

        if self._is_expired(row['expires_at'], time.time()):
            await self.delete(key)
            return None

        return row['value']

    async def ttl(self, key: str) -> Optional[float]:
        """Seconds until a key expires, or None if it has no expiry or is absent."""
        conn = self._require_connection()

        try:
            async with conn.execute(
                "SELECT expires_at FROM kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"Error getting ttl of key {key}: {e}")
            raise PersistenceError(f"Cannot get ttl of key {key}") from e

        if row is None or row['expires_at'] is None:
            return None

        remaining = row['expires_at'] - time.time()
        return remaining if remaining > 0 else None

    async def delete(self, *keys: str) -> int:
        """
        Delete keys.

        Returns:
            Number of keys that existed
        """
        if not keys:
            return 0

        conn = self._require_connection()
        placeholders = ', '.join('?' for _ in keys)

        try:
            cursor = await conn.execute(
                f"DELETE FROM kv WHERE key IN ({placeholders})", keys
            )
            await conn.commit()
            return cursor.rowcount
        except aiosqlite.Error as e:
            logger.error(f"Error deleting keys {', '.join(keys)}: {e}")
            raise PersistenceError("Cannot delete keys") from e

    # === Scanning ===

    async def scan(self, cursor: int = 0, match: str = '*',
                   count: int = SCAN_BATCH_SIZE) -> Tuple[int, List[str]]:
        """
        Examine up to `count` keys after `cursor`.

        Args:
            cursor: 0 to start, then the cursor returned by the previous call
            match: Glob pattern keys must match
            count: Rows examined per call (not the number of matches)

        Returns:
            (next_cursor, keys) - next_cursor is 0 when the scan is complete
        """
        conn = self._require_connection()

        try:
            async with conn.execute(
                """SELECT rowid, key, expires_at, key GLOB ? AS matched
                   FROM kv WHERE rowid > ? ORDER BY rowid LIMIT ?""",
                (match, cursor, count)
            ) as rows_cursor:
                rows = await rows_cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error(f"Error scanning keys by pattern {match}: {e}")
            raise PersistenceError(f"Cannot scan keys by pattern {match}") from e

        now = time.time()
        keys = [
            row['key'] for row in rows
            if row['matched'] and not self._is_expired(row['expires_at'], now)
        ]

        next_cursor = rows[-1]['rowid'] if rows and len(rows) == count else 0
        return next_cursor, keys

    async def delete_by_pattern(self, pattern: str,
                                count: int = SCAN_BATCH_SIZE) -> int:
        """
        Delete every key matching a glob pattern.

        Iterates the scan cursor until it reports completion.

        Returns:
            Number of keys deleted
        """
        deleted = 0
        cursor = 0

        while True:
            cursor, keys = await self.scan(cursor, match=pattern, count=count)

            if keys:
                deleted += await self.delete(*keys)
                logger.info(f"Deleted keys: {', '.join(keys)}")

            if cursor == 0:
                break

        return deleted

    async def purge_expired(self) -> int:
        """Physically remove expired keys. Returns how many were removed."""
        conn = self._require_connection()

        try:
            cursor = await conn.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (time.time(),)
            )
            await conn.commit()
            return cursor.rowcount
        except aiosqlite.Error as e:
            logger.error(f"Error purging expired keys: {e}")
            raise PersistenceError("Cannot purge expired keys") from e

    async def count_keys(self, match: str = '*') -> int:
        """Count live keys matching a glob pattern."""
        conn = self._require_connection()

        try:
            async with conn.execute(
                """SELECT COUNT(*) AS n FROM kv
                   WHERE key GLOB ? AND (expires_at IS NULL OR expires_at > ?)""",
                (match, time.time())
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"Error counting keys by pattern {match}: {e}")
            raise PersistenceError(f"Cannot count keys by pattern {match}") from e

        return row['n']
