"""Key-value stores for sync state, embeddings and chunks."""

import asyncio
import json
import re
import sqlite3
from typing import Any, Optional

from .base import BaseStore
from .utils.config import StoreConfig
from .utils.logging import get_logger

logger = get_logger(__name__)


class MemoryStore(BaseStore):
    """In-memory store.

    Simple dict-backed storage suitable for tests and single-process runs.
    Values are copied through JSON so callers never share state with the store.
    """

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        return [
            (key, json.loads(raw))
            for key, raw in sorted(self._data.items())
            if key.startswith(prefix)
        ]

    def __len__(self) -> int:
        return len(self._data)


class SQLiteStore(BaseStore):
    """SQLite-based key-value storage.

    Provides persistent storage for a single machine. Blocking calls run in
    the default executor.
    """

    def __init__(self, db_path: str = "docindex.db"):
        """Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_table(self, conn: sqlite3.Connection) -> None:
        """Ensure the kv table exists."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func, *args)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        return await self._run(self._get_sync, key)

    def _get_sync(self, key: str) -> Optional[dict[str, Any]]:
        conn = self._get_connection()
        try:
            self._ensure_table(conn)
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return json.loads(row["value"]) if row else None
        finally:
            conn.close()

    async def put(self, key: str, value: dict[str, Any]) -> None:
        await self._run(self._put_sync, key, value)

    def _put_sync(self, key: str, value: dict[str, Any]) -> None:
        conn = self._get_connection()
        try:
            self._ensure_table(conn)
            conn.execute(
                """
                INSERT OR REPLACE INTO kv (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (key, json.dumps(value)),
            )
            conn.commit()
        finally:
            conn.close()

    async def delete(self, key: str) -> bool:
        return await self._run(self._delete_sync, key)

    def _delete_sync(self, key: str) -> bool:
        conn = self._get_connection()
        try:
            self._ensure_table(conn)
            cursor = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        return await self._run(self._scan_sync, prefix)

    def _scan_sync(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        conn = self._get_connection()
        try:
            self._ensure_table(conn)
            rows = conn.execute(
                "SELECT key, value FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
            return [(row["key"], json.loads(row["value"])) for row in rows]
        finally:
            conn.close()


class RedisStore(BaseStore):
    """Redis-based key-value storage.

    Provides distributed storage shared by several indexer processes.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str = "docindex:",
    ):
        """Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix added to every key
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._client = None

    def _get_client(self):
        """Get or create Redis client."""
        if self._client is None:
            try:
                import redis.asyncio as redis
                self._client = redis.from_url(self.redis_url)
            except ImportError:
                raise ImportError(
                    "Redis store requires 'redis'. "
                    "Install it with: pip install redis"
                )
        return self._client

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        client = self._get_client()
        raw = await client.get(self._get_key(key))
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        client = self._get_client()
        await client.set(self._get_key(key), json.dumps(value))

    async def delete(self, key: str) -> bool:
        client = self._get_client()
        return await client.delete(self._get_key(key)) > 0

    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        client = self._get_client()
        pattern = re.sub(r"([*?\[\]])", r"\\\1", self._get_key(prefix)) + "*"
        full_keys = sorted([k async for k in client.scan_iter(match=pattern)])
        if not full_keys:
            return []

        values = await client.mget(full_keys)
        strip = len(self.key_prefix)
        results = []
        for full_key, raw in zip(full_keys, values):
            if raw is None:
                continue
            key = full_key.decode() if isinstance(full_key, bytes) else full_key
            results.append((key[strip:], json.loads(raw)))
        return results

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def create_store(config: Optional[StoreConfig] = None) -> BaseStore:
    """Create a store for the configured backend."""
    config = config or StoreConfig()

    if config.backend == "sqlite":
        store = SQLiteStore(config.path)
    elif config.backend == "redis":
        store = RedisStore(config.url, key_prefix=config.key_prefix)
    else:
        store = MemoryStore()

    logger.info(f"Using {config.backend} store")
    return store
