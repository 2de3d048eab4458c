"""The media library: the single owner of the blob, metadata and album stores."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from PySide6.QtCore import QObject, QThreadPool, Signal

from ..cache.album_manifest import AlbumManifest
from ..cache.blob_store import BlobStore
from ..cache.handle_cache import HandleCache, MediaHandle
from ..cache.index_store import MetadataStore
from ..config import (
    ALL_ALBUM_ID,
    BACKUP_DIR_NAME,
    DEFAULT_ALBUM_NAME,
    DEFAULT_POOL_SIZE,
    DEFAULT_STORAGE_TIMEOUT,
    WORK_DIR_NAME,
)
from ..errors import (
    IGalleryError,
    InvalidArgumentError,
    LibraryUnavailableError,
    NotFoundError,
    PartialFailureError,
    StorageUnavailableError,
)
from ..media_classifier import classify_media, resolve_payload_type
from ..models.media import Album, MediaItem, MediaPayload
from ..models.results import AlbumCreation, BatchResult, ItemOutcome, LibrarySnapshot, RepairReport
from ..settings import Settings
from ..utils.logging import get_logger, set_level
from .workers.delete_worker import DeleteSignals, DeleteWorker
from .workers.import_worker import ImportSignals, ImportWorker

LOGGER = get_logger()

ProgressCallback = Callable[[int, int], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_name(name: object, what: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError(f"{what} name must not be empty")
    return name.strip()


class MediaLibrary(QObject):
    """Authoritative owner of every media item and album.

    All mutations run under one re-entrant lock, so a reader calling
    :meth:`snapshot` from any thread sees either the state before or after an
    operation, never a half-written item. Bulk operations take the lock per
    item, which keeps the library readable during long imports.

    Every consumer receives frozen :class:`MediaItem`/:class:`Album` copies;
    the only way to change state is through the methods below.
    """

    itemsChanged = Signal()
    albumsChanged = Signal()
    activeAlbumReset = Signal(str)
    errorRaised = Signal(str)

    def __init__(
        self,
        blob_store: BlobStore,
        metadata_store: MetadataStore,
        album_manifest: AlbumManifest,
        *,
        handle_cache: Optional[HandleCache] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings or Settings()
        self._blobs = blob_store
        self._metadata = metadata_store
        self._manifest = album_manifest
        self._handles = handle_cache or HandleCache(
            blob_store,
            timeout=self._settings.get_float("storage.timeout", DEFAULT_STORAGE_TIMEOUT),
        )
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._items: Dict[str, MediaItem] = {}
        self._albums: Dict[str, Album] = {}
        self._issued_ids: Set[str] = set()
        self._version = 0
        self._active_album_id = ALL_ALBUM_ID
        self._default_album = Album(
            id=ALL_ALBUM_ID,
            name=str(self._settings.get("library.default_album_name", DEFAULT_ALBUM_NAME)),
            created_at=datetime.min.replace(tzinfo=timezone.utc),
            is_default=True,
        )
        self._thread_pool = QThreadPool.globalInstance()
        self._closed = False

    # ------------------------------------------------------------------
    # Construction and loading
    # ------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        root: Path,
        *,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        parent: Optional[QObject] = None,
    ) -> MediaLibrary:
        """Open (or initialise) the library stored under *root* and load it."""

        normalized = Path(root).expanduser().resolve()
        if not normalized.exists() or not normalized.is_dir():
            raise LibraryUnavailableError(f"Library path does not exist: {root}")
        work_dir = normalized / WORK_DIR_NAME
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LibraryUnavailableError(f"Cannot create work directory {work_dir}: {exc}") from exc

        settings = settings or Settings.load(work_dir)
        set_level(settings.get("logging.level", "INFO"))
        timeout = settings.get_float("storage.timeout", DEFAULT_STORAGE_TIMEOUT)
        pool_size = settings.get_int("storage.pool_size", DEFAULT_POOL_SIZE)
        backup_dir = work_dir / BACKUP_DIR_NAME if settings.get_bool("library.manifest_backups", False) else None

        blob_store = BlobStore(work_dir, pool_size=pool_size, timeout=timeout)
        metadata_store = MetadataStore(work_dir, pool_size=pool_size, timeout=timeout)
        library = cls(
            blob_store,
            metadata_store,
            AlbumManifest(work_dir, backup_dir=backup_dir),
            settings=settings,
            clock=clock,
            parent=parent,
        )
        report = library.load()
        if not report.clean:
            LOGGER.info(
                "Repaired library at %s: %d dropped record(s), %d orphan blob(s), %d scrubbed item(s)",
                normalized,
                len(report.dropped_records),
                len(report.orphan_blobs),
                len(report.scrubbed_items),
            )
        return library

    def load(self) -> RepairReport:
        """Rebuild the in-memory snapshot from disk, repairing partial writes.

        Metadata records whose blob is missing are removed, blobs that no
        record references are deleted, album references to albums that no
        longer exist are scrubbed and a missing ``"all"`` membership is
        restored. Orphan blobs are only swept when every record could be
        parsed, since an unreadable record may still own one.
        """

        with self._lock:
            self._ensure_open()
            albums = self._manifest.load()
            records = self._metadata.get_all()
            blob_ids = set(self._blobs.list_ids())
            album_ids = {album.id for album in albums}

            items: Dict[str, MediaItem] = {}
            referenced: Set[str] = set()
            dropped: List[str] = []
            scrubbed: List[str] = []
            unreadable: List[str] = []

            for record in records:
                record_id = str(record.get("id"))
                try:
                    item = MediaItem.from_record(record)
                except (TypeError, ValueError) as exc:
                    LOGGER.warning("Skipping unreadable media record %s: %s", record_id, exc)
                    unreadable.append(record_id)
                    blob_ref = record.get("blob_ref")
                    if isinstance(blob_ref, str):
                        referenced.add(blob_ref)
                    continue

                if item.blob_ref not in blob_ids:
                    LOGGER.warning("Dropping media record %s: blob %s is missing", item.id, item.blob_ref)
                    self._best_effort(self._metadata.delete, item.id)
                    dropped.append(item.id)
                    continue

                referenced.add(item.blob_ref)
                valid_ids = [album_id for album_id in item.album_ids if album_id == ALL_ALBUM_ID or album_id in album_ids]
                if list(valid_ids) != record.get("album_ids"):
                    item = item.with_album_ids(valid_ids)
                    self._best_effort(self._metadata.put, item.to_record())
                    scrubbed.append(item.id)
                items[item.id] = item

            orphans: List[str] = []
            if unreadable:
                LOGGER.warning("Skipping orphan blob sweep: %d unreadable record(s)", len(unreadable))
            else:
                for blob_id in sorted(blob_ids - referenced):
                    if self._best_effort(self._blobs.delete, blob_id):
                        orphans.append(blob_id)

            self._items = items
            self._albums = {album.id: album for album in albums}
            self._issued_ids.update(items)
            self._issued_ids.update(album.id for album in albums)
            self._issued_ids.update(blob_ids)
            self._handles.prune_revoked(blob_ids.difference(orphans))
            if self._active_album_id not in self._albums:
                self._active_album_id = ALL_ALBUM_ID
            self._version += 1

        self.albumsChanged.emit()
        self.itemsChanged.emit()
        return RepairReport(
            dropped_records=tuple(dropped),
            orphan_blobs=tuple(orphans),
            scrubbed_items=tuple(scrubbed),
            unreadable_records=tuple(unreadable),
        )

    def repair(self) -> RepairReport:
        """Re-run the integrity pass of :meth:`load` on demand."""

        return self.load()

    def close(self) -> None:
        """Release every handle and close both databases."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._handles.close()
        self._blobs.close()
        self._metadata.close()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def handles(self) -> HandleCache:
        return self._handles

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def active_album_id(self) -> str:
        with self._lock:
            return self._active_album_id

    def snapshot(self) -> LibrarySnapshot:
        """Return an immutable, internally consistent copy of the library."""

        with self._lock:
            return LibrarySnapshot(
                version=self._version,
                items=tuple(self._items.values()),
                albums=self._ordered_albums(),
                active_album_id=self._active_album_id,
            )

    def list_albums(self) -> Tuple[Album, ...]:
        """Return the reserved album first, then user albums newest first."""

        with self._lock:
            return self._ordered_albums()

    def get_item(self, item_id: str) -> MediaItem:
        with self._lock:
            return self._require_item(item_id)

    def get_album(self, album_id: str) -> Album:
        with self._lock:
            if album_id == ALL_ALBUM_ID:
                return self._default_album
            album = self._albums.get(album_id)
            if album is None:
                raise NotFoundError("Album", album_id)
            return album

    def resolve_handle(self, item_id: str) -> MediaHandle:
        """Return the display handle for *item_id*'s blob."""

        blob_ref = self.get_item(item_id).blob_ref
        return self._handles.resolve(blob_ref)

    # ------------------------------------------------------------------
    # Media items
    # ------------------------------------------------------------------
    def add_items(
        self,
        payloads: Iterable[MediaPayload],
        target_album_id: str = ALL_ALBUM_ID,
        *,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Store each payload as a new media item.

        Each item is written blob first, then metadata; when the metadata
        write fails the blob is deleted again, so no item is ever half
        created. Failures are reported per payload and never undo the items
        that were created successfully.
        """

        pending = list(payloads)
        with self._lock:
            self._ensure_open()
            if target_album_id != ALL_ALBUM_ID and target_album_id not in self._albums:
                raise NotFoundError("Album", target_album_id)

        outcomes: List[ItemOutcome] = []
        created: List[MediaItem] = []
        cancelled = False
        total = len(pending)
        for index, payload in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            with self._lock:
                item_id = self._new_id()
                label = getattr(payload, "name", None)
                try:
                    self._ensure_open()
                    item = self._create_item(item_id, payload, target_album_id)
                except IGalleryError as exc:
                    LOGGER.warning("Failed to add %r: %s", label, exc)
                    outcomes.append(ItemOutcome(item_id, exc, label))
                except Exception as exc:
                    LOGGER.exception("Unexpected error while adding %r", label)
                    error = IGalleryError(f"Cannot add {label!r}: {exc}")
                    error.__cause__ = exc
                    outcomes.append(ItemOutcome(item_id, error, label))
                else:
                    self._items[item.id] = item
                    self._version += 1
                    created.append(item)
                    outcomes.append(ItemOutcome(item.id, None, label))
            if progress is not None:
                progress(index + 1, total)

        result = BatchResult(outcomes=tuple(outcomes), items=tuple(created), cancelled=cancelled)
        if created:
            self.itemsChanged.emit()
        self._report_failures("added", result)
        return result

    def delete_items(
        self,
        item_ids: Iterable[str],
        *,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Delete each item's metadata and blob and evict its handle.

        Deletion is atomic per item only: a failing id is reported in the
        result while the other deletions stay in effect.
        """

        pending = list(dict.fromkeys(item_ids))
        outcomes: List[ItemOutcome] = []
        removed: List[MediaItem] = []
        cancelled = False
        total = len(pending)
        for index, item_id in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            with self._lock:
                try:
                    self._ensure_open()
                    item = self._require_item(item_id)
                    self._delete_item(item)
                except IGalleryError as exc:
                    LOGGER.warning("Failed to delete item %s: %s", item_id, exc)
                    outcomes.append(ItemOutcome(item_id, exc))
                else:
                    del self._items[item_id]
                    self._version += 1
                    self._handles.evict(item.blob_ref)
                    removed.append(item)
                    outcomes.append(ItemOutcome(item_id, None, item.name))
            if progress is not None:
                progress(index + 1, total)

        result = BatchResult(outcomes=tuple(outcomes), items=tuple(removed), cancelled=cancelled)
        if removed:
            self.itemsChanged.emit()
        self._report_failures("deleted", result)
        return result

    def rename_item(self, item_id: str, new_name: str) -> MediaItem:
        """Rename *item_id*; the stored name is unchanged when this fails."""

        name = _validate_name(new_name, "Item")
        with self._lock:
            self._ensure_open()
            item = self._require_item(item_id)
            if item.name == name:
                return item
            updated = item.with_name(name)
            self._metadata.put(updated.to_record())
            self._items[item_id] = updated
            self._version += 1
        self.itemsChanged.emit()
        return updated

    # ------------------------------------------------------------------
    # Album membership
    # ------------------------------------------------------------------
    def add_item_to_album(self, item_id: str, album_id: str) -> MediaItem:
        """Add *item_id* to *album_id*; a no-op when it is already a member."""

        if album_id == ALL_ALBUM_ID:
            raise InvalidArgumentError("Items cannot be added to the reserved album manually")
        with self._lock:
            self._ensure_open()
            changed = self._set_membership(item_id, album_id, present=True)
            item = self._items[item_id]
        if changed:
            self.itemsChanged.emit()
        return item

    def remove_item_from_album(self, item_id: str, album_id: str) -> MediaItem:
        """Remove *item_id* from *album_id*; a no-op when it is not a member."""

        if album_id == ALL_ALBUM_ID:
            raise InvalidArgumentError("Items cannot be removed from the reserved album")
        with self._lock:
            self._ensure_open()
            changed = self._set_membership(item_id, album_id, present=False)
            item = self._items[item_id]
        if changed:
            self.itemsChanged.emit()
        return item

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------
    def create_album(self, name: str, initial_item_ids: Sequence[str] = ()) -> AlbumCreation:
        """Create an album and attach *initial_item_ids* to it.

        The album is persisted before any item is touched; items that cannot
        be attached are reported in :attr:`AlbumCreation.attached` and do not
        undo the album.
        """

        album_name = _validate_name(name, "Album")
        with self._lock:
            self._ensure_open()
            album = Album(id=self._new_id(), name=album_name, created_at=self._clock())
            self._manifest.save([*self._albums.values(), album])
            self._albums[album.id] = album
            self._version += 1
        self.albumsChanged.emit()
        LOGGER.info("Created album %s (%s)", album.id, album.name)

        outcomes: List[ItemOutcome] = []
        attached: List[MediaItem] = []
        for item_id in dict.fromkeys(initial_item_ids):
            with self._lock:
                try:
                    self._ensure_open()
                    self._set_membership(item_id, album.id, present=True)
                except IGalleryError as exc:
                    LOGGER.warning("Failed to attach item %s to new album %s: %s", item_id, album.id, exc)
                    outcomes.append(ItemOutcome(item_id, exc))
                else:
                    attached.append(self._items[item_id])
                    outcomes.append(ItemOutcome(item_id))

        result = BatchResult(outcomes=tuple(outcomes), items=tuple(attached))
        if attached:
            self.itemsChanged.emit()
        self._report_failures("attached", result)
        return AlbumCreation(album=album, attached=result)

    def rename_album(self, album_id: str, new_name: str) -> Album:
        if album_id == ALL_ALBUM_ID:
            raise InvalidArgumentError("The reserved album cannot be renamed")
        name = _validate_name(new_name, "Album")
        with self._lock:
            self._ensure_open()
            album = self._albums.get(album_id)
            if album is None:
                raise NotFoundError("Album", album_id)
            if album.name == name:
                return album
            renamed = album.with_name(name)
            self._manifest.save([renamed if entry.id == album_id else entry for entry in self._albums.values()])
            self._albums[album_id] = renamed
            self._version += 1
        self.albumsChanged.emit()
        return renamed

    def delete_album(self, album_id: str) -> BatchResult:
        """Delete an album and scrub it from every item that references it.

        The album document is rewritten first; if that fails nothing has
        changed. The album and every in-memory reference to it are then
        removed under the same lock, so no reader ever sees an item pointing
        at a missing album. An item whose scrubbed record could not be
        persisted keeps a dangling id on disk only, which the next load
        removes; those failures raise :class:`PartialFailureError` once the
        deletion has taken effect. If the active view was this album the
        library falls back to ``"all"`` and emits :attr:`activeAlbumReset`.
        """

        if album_id == ALL_ALBUM_ID:
            raise InvalidArgumentError("The reserved album cannot be deleted")

        outcomes: List[ItemOutcome] = []
        reset_view = False
        with self._lock:
            self._ensure_open()
            if album_id not in self._albums:
                raise NotFoundError("Album", album_id)

            self._manifest.save([album for album in self._albums.values() if album.id != album_id])
            del self._albums[album_id]
            if self._active_album_id == album_id:
                self._active_album_id = ALL_ALBUM_ID
                reset_view = True

            for item in list(self._items.values()):
                if album_id not in item.album_ids:
                    continue
                updated = item.with_album_ids(entry for entry in item.album_ids if entry != album_id)
                self._items[item.id] = updated
                try:
                    self._metadata.put(updated.to_record())
                except IGalleryError as exc:
                    LOGGER.error("Failed to scrub album %s from item %s: %s", album_id, item.id, exc)
                    outcomes.append(ItemOutcome(item.id, exc, item.name))
                else:
                    outcomes.append(ItemOutcome(item.id, None, item.name))
            self._version += 1

        if outcomes:
            self.itemsChanged.emit()
        self.albumsChanged.emit()
        if reset_view:
            self.activeAlbumReset.emit(ALL_ALBUM_ID)
        LOGGER.info("Deleted album %s (%d item(s) scrubbed)", album_id, len(outcomes))

        result = BatchResult(outcomes=tuple(outcomes))
        if result.failures:
            message = (
                f"Album {album_id} was deleted but {len(result.failures)} item(s) still reference it on disk"
            )
            self.errorRaised.emit(message)
            raise PartialFailureError(message, result.outcomes)
        return result

    def set_active_album(self, album_id: str) -> None:
        """Record which album the UI is showing."""

        with self._lock:
            if album_id != ALL_ALBUM_ID and album_id not in self._albums:
                raise NotFoundError("Album", album_id)
            self._active_album_id = album_id

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------
    def start_import(self, payloads: Iterable[MediaPayload], target_album_id: str = ALL_ALBUM_ID) -> ImportWorker:
        """Run :meth:`add_items` on the global thread pool."""

        worker = ImportWorker(self, list(payloads), target_album_id, ImportSignals())
        self._thread_pool.start(worker)
        return worker

    def start_delete(self, item_ids: Iterable[str]) -> DeleteWorker:
        """Run :meth:`delete_items` on the global thread pool."""

        worker = DeleteWorker(self, list(item_ids), DeleteSignals())
        self._thread_pool.start(worker)
        return worker

    # ------------------------------------------------------------------
    # Internal helpers (callers hold ``self._lock``)
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageUnavailableError("Media library is closed")

    def _new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def _require_item(self, item_id: str) -> MediaItem:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError("Media item", item_id)
        return item

    def _ordered_albums(self) -> Tuple[Album, ...]:
        positioned = list(enumerate(self._albums.values()))
        positioned.sort(key=lambda entry: (entry[1].created_at, entry[0]), reverse=True)
        return (self._default_album, *(album for _, album in positioned))

    def _create_item(self, item_id: str, payload: MediaPayload, target_album_id: str) -> MediaItem:
        if not isinstance(payload, MediaPayload):
            raise InvalidArgumentError(f"Unsupported payload: {payload!r}")
        name = _validate_name(payload.name, "Item")
        if target_album_id != ALL_ALBUM_ID and target_album_id not in self._albums:
            raise NotFoundError("Album", target_album_id)

        data = bytes(payload.data)
        media_type = resolve_payload_type(payload)
        blob_ref = self._new_id()
        album_ids = (ALL_ALBUM_ID,) if target_album_id == ALL_ALBUM_ID else (ALL_ALBUM_ID, target_album_id)
        item = MediaItem(
            id=item_id,
            name=name,
            blob_ref=blob_ref,
            kind=classify_media(media_type),
            size_bytes=len(data),
            created_at=self._clock(),
            album_ids=album_ids,
            media_type=media_type,
        )

        self._blobs.put(blob_ref, data, media_type)
        try:
            self._metadata.put(item.to_record())
        except Exception:
            self._rollback_blob(blob_ref)
            raise
        return item

    def _rollback_blob(self, blob_ref: str) -> None:
        try:
            self._blobs.delete(blob_ref)
        except IGalleryError as exc:
            LOGGER.error("Could not roll back blob %s; it will be swept on the next load: %s", blob_ref, exc)

    def _delete_item(self, item: MediaItem) -> None:
        self._metadata.delete(item.id)
        try:
            self._blobs.delete(item.blob_ref)
        except Exception:
            try:
                self._metadata.put(item.to_record())
            except IGalleryError as exc:
                # The record is gone, so the item is deleted; only its blob lingers.
                LOGGER.error(
                    "Item %s was deleted but blob %s could not be; it will be swept on the next load: %s",
                    item.id,
                    item.blob_ref,
                    exc,
                )
                return
            raise

    def _set_membership(self, item_id: str, album_id: str, *, present: bool) -> bool:
        item = self._require_item(item_id)
        if present and album_id not in self._albums:
            raise NotFoundError("Album", album_id)
        if (album_id in item.album_ids) == present:
            return False
        if present:
            album_ids: Iterable[str] = (*item.album_ids, album_id)
        else:
            album_ids = (entry for entry in item.album_ids if entry != album_id)
        updated = item.with_album_ids(album_ids)
        self._metadata.put(updated.to_record())
        self._items[item_id] = updated
        self._version += 1
        return True

    def _best_effort(self, operation: Callable[..., object], *args: object) -> bool:
        try:
            operation(*args)
        except IGalleryError as exc:
            LOGGER.error("Repair step %s%r failed: %s", getattr(operation, "__name__", operation), args, exc)
            return False
        return True

    def _report_failures(self, verb: str, result: BatchResult) -> None:
        failures = result.failures
        if not failures:
            return
        first = failures[0]
        subject = first.label or first.item_id
        message = f"{len(failures)} item(s) could not be {verb}; first error for {subject}: {first.error}"
        self.errorRaised.emit(message)


__all__ = ["MediaLibrary"]
