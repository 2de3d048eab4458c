"""SQLite connection pool shared by the blob and metadata stores.

Connections are created lazily, handed out one caller at a time and returned
with any open transaction rolled back. Every wait is bounded: a pool that
cannot hand out a connection in time, a database that stays locked past the
busy timeout, or a pool that has been shut down all surface as
:class:`~iGallery.errors.StorageUnavailableError`.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Iterator, List, Tuple

from ...config import DEFAULT_POOL_SIZE, DEFAULT_STORAGE_TIMEOUT
from ...errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Thread-safe pool of SQLite connections for one database file."""

    def __init__(
        self,
        db_path: str | Path,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        """
        :param db_path: Path to the SQLite database file.
        :param pool_size: Maximum number of simultaneously open connections.
        :param timeout: Seconds to wait for a free connection or a database lock.
        """

        self._db_path = str(db_path)
        self._pool_size = max(1, int(pool_size))
        self._timeout = float(timeout)
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=self._pool_size)
        self._lock = threading.Lock()
        self._created = 0
        self._closed = False

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def closed(self) -> bool:
        return self._closed

    def _create_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=self._timeout,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA temp_store=MEMORY")
            conn.row_factory = sqlite3.Row
        except sqlite3.Error as exc:
            logger.error("Failed to open database %s: %s", self._db_path, exc)
            raise StorageUnavailableError(f"Cannot open database {self._db_path}: {exc}") from exc
        logger.debug("Opened connection %d for %s", self._created + 1, self._db_path)
        return conn

    def acquire(self) -> sqlite3.Connection:
        """Return a free connection, opening a new one while below capacity."""

        if self._closed:
            raise StorageUnavailableError(f"Connection pool for {self._db_path} is shut down")

        try:
            return self._pool.get(block=False)
        except Empty:
            pass

        with self._lock:
            if self._created < self._pool_size:
                conn = self._create_connection()
                self._created += 1
                return conn

        try:
            return self._pool.get(timeout=self._timeout)
        except Empty:
            logger.warning("Connection pool exhausted for %s (timeout after %.1fs)", self._db_path, self._timeout)
            raise StorageUnavailableError(
                f"Timed out after {self._timeout:.1f}s waiting for a connection to {self._db_path}"
            ) from None

    def release(self, conn: sqlite3.Connection) -> None:
        """Return *conn* to the pool, closing it when the pool is shut down."""

        if self._closed:
            conn.close()
            return
        try:
            conn.rollback()
            self._pool.put(conn, block=False)
        except (sqlite3.Error, Full) as exc:
            logger.warning("Discarding connection for %s: %s", self._db_path, exc)
            conn.close()
            with self._lock:
                self._created -= 1

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow a connection; storage errors are re-raised as unavailability."""

        conn = self.acquire()
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.warning("Database error on %s: %s", self._db_path, exc)
            raise StorageUnavailableError(f"Database error on {self._db_path}: {exc}") from exc
        finally:
            self.release(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Borrow a connection and commit on success, rolling back on error."""

        with self.connection() as conn:
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def execute_query(self, query: str, params: Tuple[Any, ...] = ()) -> List[sqlite3.Row]:
        """Run a read-only query and return every row."""

        with self.connection() as conn:
            return conn.execute(query, params).fetchall()

    def shutdown(self) -> None:
        """Close all pooled connections; later acquisitions fail."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            closed_count = 0
            while True:
                try:
                    conn = self._pool.get(block=False)
                except Empty:
                    break
                conn.close()
                closed_count += 1
            self._created = 0
        logger.debug("Closed %d connections for %s", closed_count, self._db_path)
