"""Process-local cache of display handles for stored blobs.

A handle is a temporary file holding a copy of the blob plus its ``file://``
URI, which any renderer (``QImageReader``, ``QMediaPlayer``, a web view) can
open directly. Materialising one costs a full blob read, so the cache keeps
exactly one live handle per blob id until :meth:`HandleCache.evict` releases
it. Handles never outlive the process and are never persisted.
"""

from __future__ import annotations

import shutil
import tempfile
import threading
import uuid
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Set

from ..config import DEFAULT_STORAGE_TIMEOUT, HANDLE_DIR_PREFIX
from ..errors import NotFoundError, StorageUnavailableError
from ..utils.logging import get_logger

logger = get_logger()


class _BlobSource(Protocol):
    def get(self, blob_id: str) -> bytes:
        ...


@dataclass(frozen=True, slots=True)
class MediaHandle:
    """Revocable, process-local access handle for one blob."""

    blob_id: str
    path: Path
    uri: str
    size: int

    @property
    def is_live(self) -> bool:
        """``False`` once the handle has been evicted."""

        return self.path.exists()


class HandleCache:
    """Map blob ids to live :class:`MediaHandle` objects.

    Concurrent :meth:`resolve` calls for the same id share one in-flight fetch.
    Evicted ids are remembered: identifiers are never reused, so a late fetch
    racing with a deletion is discarded instead of resurrecting a handle.
    The revoked set grows by one id per eviction; :meth:`prune_revoked` drops
    ids whose blob no longer exists, since resolving those fails at the source.
    """

    def __init__(self, blob_source: _BlobSource, *, timeout: float = DEFAULT_STORAGE_TIMEOUT) -> None:
        self._source = blob_source
        self._timeout = timeout
        self._lock = threading.Lock()
        self._handles: Dict[str, MediaHandle] = {}
        self._pending: Dict[str, Future] = {}
        self._revoked: Set[str] = set()
        self._session_dir: Optional[Path] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def resolve(self, blob_id: str) -> MediaHandle:
        """Return the live handle for *blob_id*, materialising it on first use."""

        with self._lock:
            if self._closed:
                raise StorageUnavailableError("Handle cache is closed")
            handle = self._handles.get(blob_id)
            if handle is not None:
                return handle
            if blob_id in self._revoked:
                raise NotFoundError("Blob", blob_id)
            future = self._pending.get(blob_id)
            owner = future is None
            if owner:
                future = Future()
                self._pending[blob_id] = future

        if not owner:
            try:
                return future.result(timeout=self._timeout)
            except FutureTimeoutError:
                raise StorageUnavailableError(
                    f"Timed out after {self._timeout:.1f}s waiting for blob {blob_id}"
                ) from None

        try:
            handle = self._materialise(blob_id)
        except BaseException as exc:
            with self._lock:
                self._pending.pop(blob_id, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._pending.pop(blob_id, None)
            discarded = self._closed or blob_id in self._revoked
            if not discarded:
                self._handles[blob_id] = handle
        if discarded:
            self._release(handle)
            error = NotFoundError("Blob", blob_id)
            future.set_exception(error)
            raise error

        future.set_result(handle)
        return handle

    def evict(self, blob_id: str) -> bool:
        """Release the handle for *blob_id*; return ``True`` if one was live.

        The id is revoked for the rest of the process lifetime, so later
        :meth:`resolve` calls raise :class:`NotFoundError`.
        """

        with self._lock:
            self._revoked.add(blob_id)
            handle = self._handles.pop(blob_id, None)
        if handle is None:
            return False
        self._release(handle)
        return True

    def prune_revoked(self, live_blob_ids: Iterable[str]) -> int:
        """Forget revoked ids that are absent from *live_blob_ids*.

        Ids with a fetch still in flight are kept. Returns how many were dropped.
        """

        live = set(live_blob_ids)
        with self._lock:
            stale = {blob_id for blob_id in self._revoked if blob_id not in live and blob_id not in self._pending}
            self._revoked -= stale
        return len(stale)

    def peek(self, blob_id: str) -> Optional[MediaHandle]:
        """Return the cached handle without materialising one."""

        with self._lock:
            return self._handles.get(blob_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, blob_id: object) -> bool:
        with self._lock:
            return blob_id in self._handles

    def close(self) -> None:
        """Release every handle and remove the session directory."""

        with self._lock:
            self._closed = True
            handles = list(self._handles.values())
            self._handles.clear()
            session_dir = self._session_dir
            self._session_dir = None
        for handle in handles:
            self._release(handle)
        if session_dir is not None:
            shutil.rmtree(session_dir, ignore_errors=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_session_dir(self) -> Path:
        with self._lock:
            if self._session_dir is None:
                self._session_dir = Path(tempfile.mkdtemp(prefix=HANDLE_DIR_PREFIX))
            return self._session_dir

    def _materialise(self, blob_id: str) -> MediaHandle:
        data = self._source.get(blob_id)
        target = self._ensure_session_dir() / uuid.uuid4().hex
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot materialise handle for blob {blob_id}: {exc}") from exc
        logger.debug("Materialised handle for blob %s at %s", blob_id, target)
        return MediaHandle(blob_id=blob_id, path=target, uri=target.as_uri(), size=len(data))

    def _release(self, handle: MediaHandle) -> None:
        try:
            handle.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to release handle %s: %s", handle.path, exc)


__all__ = ["HandleCache", "MediaHandle"]
