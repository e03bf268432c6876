"""
SQLite-based cache for connection context.
Keeps the discovered SharePoint tenant URL and request digests between invocations.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("m365_admin.cache")


class ContextCache:
    """
    Persistent key/value cache backed by SQLite.
    Features:
      - Per-entry expiry (or none)
      - Connection-per-call, safe to share across awaits
      - Stores values as JSON
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize the cache database schema."""
        with sqlite3.connect(str(self.db_path)) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS context_entries (
                    key TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    stored_at REAL NOT NULL,
                    expires_at REAL
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve cached data if it exists and hasn't expired.
        Returns None if not found or expired.
        """
        with sqlite3.connect(str(self.db_path)) as conn:
            row = conn.execute(
                "SELECT data, expires_at FROM context_entries WHERE key = ?",
                (key,),
            ).fetchone()

        if row is None:
            return None

        data_json, expires_at = row
        if expires_at is not None and time.time() >= expires_at:
            logger.debug(f"Cache expired for key: {key}")
            return None

        logger.debug(f"Cache hit for key: {key}")
        return json.loads(data_json)

    def put(self, key: str, data: Any, ttl_seconds: Optional[float] = None):
        """Store data; without ttl_seconds the entry never expires."""
        now = time.time()
        expires_at = now + ttl_seconds if ttl_seconds is not None else None

        with sqlite3.connect(str(self.db_path)) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO context_entries (key, data, stored_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (key, json.dumps(data, default=str), now, expires_at),
            )
            conn.commit()
        logger.debug(f"Cached key: {key}")

    def clear_expired(self) -> int:
        """Remove all expired cache entries."""
        with sqlite3.connect(str(self.db_path)) as conn:
            deleted = conn.execute(
                "DELETE FROM context_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (time.time(),),
            ).rowcount
            conn.commit()
        if deleted:
            logger.info(f"Cleared {deleted} expired cache entries.")
        return deleted
