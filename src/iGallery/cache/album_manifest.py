"""JSON document that persists the user's album list.

Albums are few and small, so they live in a single document next to the
databases rather than in a table. Every mutation rewrites the whole document
atomically before the caller is told it succeeded; nothing is deferred.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from ..config import ALBUM_MANIFEST_NAME, ALBUM_MANIFEST_SCHEMA, ALL_ALBUM_ID
from ..errors import ManifestInvalidError, StorageUnavailableError
from ..models.media import Album
from ..utils.jsonio import read_json, write_json
from ..utils.logging import get_logger

logger = get_logger()


class AlbumManifest:
    """Load and save the ordered list of user albums.

    The reserved "all" album is implicit and never written to disk.
    """

    def __init__(self, work_dir: Path, *, backup_dir: Optional[Path] = None) -> None:
        self.path = work_dir / ALBUM_MANIFEST_NAME
        self._backup_dir = backup_dir

    def load(self) -> List[Album]:
        """Return the persisted albums in creation order."""

        try:
            payload = self._read_payload(self.path)
        except ManifestInvalidError:
            fallback = self._latest_backup()
            if fallback is None:
                raise
            logger.warning("Album manifest %s is unreadable; restoring from %s", self.path, fallback)
            payload = self._read_payload(fallback)

        albums: List[Album] = []
        seen: set[str] = set()
        for entry in payload.get("albums", []):
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed album entry in %s: %r", self.path, entry)
                continue
            try:
                album = Album.from_record(entry)
            except ValueError as exc:
                logger.warning("Skipping invalid album entry in %s: %s", self.path, exc)
                continue
            if album.id in seen:
                continue
            seen.add(album.id)
            albums.append(album)
        return albums

    def save(self, albums: Sequence[Album]) -> None:
        """Persist *albums*, replacing the previous document."""

        payload = {
            "schema": ALBUM_MANIFEST_SCHEMA,
            "albums": [album.to_record() for album in albums if album.id != ALL_ALBUM_ID],
        }
        try:
            write_json(self.path, payload, backup_dir=self._backup_dir)
        except OSError as exc:
            logger.error("Failed to write album manifest %s: %s", self.path, exc)
            raise StorageUnavailableError(f"Cannot write album manifest {self.path}: {exc}") from exc

    def _read_payload(self, path: Path) -> dict:
        try:
            payload = read_json(path, default={"schema": ALBUM_MANIFEST_SCHEMA, "albums": []})
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot read album manifest {path}: {exc}") from exc
        if payload.get("schema") != ALBUM_MANIFEST_SCHEMA:
            raise ManifestInvalidError(f"Unsupported album manifest schema in {path}: {payload.get('schema')!r}")
        if not isinstance(payload.get("albums", []), list):
            raise ManifestInvalidError(f"Album list in {path} is not an array")
        return payload

    def _latest_backup(self) -> Optional[Path]:
        if self._backup_dir is None or not self._backup_dir.is_dir():
            return None
        candidates = sorted(self._backup_dir.glob(f"{self.path.stem}-*{self.path.suffix}"))
        return candidates[-1] if candidates else None


__all__ = ["AlbumManifest"]
