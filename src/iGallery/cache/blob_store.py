"""Durable storage for raw media payloads.

Payloads live in their own SQLite database (``blobs.db``) so that metadata
scans never page through image or video bytes. Keys are opaque identifiers
chosen by the caller; there is no versioning.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..config import BLOB_DB_NAME, DEFAULT_POOL_SIZE, DEFAULT_STORAGE_TIMEOUT
from ..errors import NotFoundError, StorageUnavailableError
from ..utils.logging import get_logger
from .index_store.connection_pool import ConnectionPool

logger = get_logger()


class BlobStore:
    """Key/value store mapping a blob id to its bytes."""

    def __init__(
        self,
        work_dir: Path,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        self.path = work_dir / BLOB_DB_NAME
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot create blob store directory {self.path.parent}: {exc}") from exc
        self._pool = ConnectionPool(self.path, pool_size=pool_size, timeout=timeout)
        self._init_db()

    def _init_db(self) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    id TEXT PRIMARY KEY,
                    data BLOB NOT NULL,
                    media_type TEXT,
                    size INTEGER NOT NULL,
                    stored_at TEXT NOT NULL
                )
                """
            )

    def put(self, blob_id: str, data: bytes, media_type: Optional[str] = None) -> None:
        """Store *data* under *blob_id*, replacing any previous payload."""

        stored_at = datetime.now(timezone.utc).isoformat()
        with self._pool.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO files (id, data, media_type, size, stored_at) VALUES (?, ?, ?, ?, ?)",
                (blob_id, sqlite3.Binary(data), media_type, len(data), stored_at),
            )
        logger.debug("Stored blob %s (%d bytes)", blob_id, len(data))

    def get(self, blob_id: str) -> bytes:
        """Return the bytes stored under *blob_id*."""

        rows = self._pool.execute_query("SELECT data FROM files WHERE id = ?", (blob_id,))
        if not rows:
            raise NotFoundError("Blob", blob_id)
        return bytes(rows[0]["data"])

    def exists(self, blob_id: str) -> bool:
        rows = self._pool.execute_query("SELECT 1 FROM files WHERE id = ?", (blob_id,))
        return bool(rows)

    def delete(self, blob_id: str) -> bool:
        """Delete *blob_id*; return ``True`` when a payload was removed."""

        with self._pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM files WHERE id = ?", (blob_id,))
            removed = cursor.rowcount > 0
        if removed:
            logger.debug("Deleted blob %s", blob_id)
        return removed

    def list_ids(self) -> List[str]:
        """Return every stored blob id."""

        return [row["id"] for row in self._pool.execute_query("SELECT id FROM files ORDER BY rowid")]

    def close(self) -> None:
        self._pool.shutdown()


__all__ = ["BlobStore"]
