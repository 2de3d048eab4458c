"""Persistent storage for media item records.

Each record is a JSON document keyed by the item id. The store offers no
query language: callers read the whole table with :meth:`MetadataStore.get_all`
and filter in memory, which is adequate for libraries of thousands of items.
Upserts keep a record's original row position so :meth:`get_all` returns
records in arrival order, also after a restart.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...config import DEFAULT_POOL_SIZE, DEFAULT_STORAGE_TIMEOUT, METADATA_DB_NAME
from ...errors import InvalidArgumentError, StorageUnavailableError
from ...utils.logging import get_logger
from .connection_pool import ConnectionPool

logger = get_logger()


class MetadataStore:
    """Read/write helper for the ``photos`` table of ``library.db``."""

    def __init__(
        self,
        work_dir: Path,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        self.path = work_dir / METADATA_DB_NAME
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot create metadata directory {self.path.parent}: {exc}") from exc
        self._pool = ConnectionPool(self.path, pool_size=pool_size, timeout=timeout)
        self._init_db()

    def _init_db(self) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS photos (
                    id TEXT PRIMARY KEY,
                    record TEXT NOT NULL
                )
                """
            )

    def put(self, record: Dict[str, Any]) -> None:
        """Insert or update *record*, keyed by its ``id`` field."""

        record_id = record.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise InvalidArgumentError("Metadata records require a non-empty string id")
        payload = json.dumps(record, ensure_ascii=False, sort_keys=True)
        with self._pool.transaction() as conn:
            conn.execute(
                "INSERT INTO photos (id, record) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET record = excluded.record",
                (record_id, payload),
            )

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        rows = self._pool.execute_query("SELECT id, record FROM photos WHERE id = ?", (record_id,))
        if not rows:
            return None
        return self._decode(rows[0]["id"], rows[0]["record"])

    def get_all(self) -> List[Dict[str, Any]]:
        """Return every record in arrival order.

        Rows whose JSON cannot be decoded are returned as ``{"id": ...}`` so the
        caller can decide how to repair them.
        """

        rows = self._pool.execute_query("SELECT id, record FROM photos ORDER BY rowid")
        return [self._decode(row["id"], row["record"]) for row in rows]

    def delete(self, record_id: str) -> bool:
        """Delete *record_id*; return ``True`` when a record was removed."""

        with self._pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM photos WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    def close(self) -> None:
        self._pool.shutdown()

    @staticmethod
    def _decode(record_id: str, payload: str) -> Dict[str, Any]:
        try:
            decoded = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable metadata record %s: %s", record_id, exc)
            return {"id": record_id}
        if not isinstance(decoded, dict):
            logger.warning("Metadata record %s is not an object", record_id)
            return {"id": record_id}
        decoded["id"] = record_id
        return decoded


__all__ = ["MetadataStore"]
