from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from iGallery.cache.album_manifest import AlbumManifest
from iGallery.config import ALBUM_MANIFEST_SCHEMA
from iGallery.errors import ManifestInvalidError
from iGallery.models.media import Album


def _album(album_id: str, name: str, minute: int = 0) -> Album:
    return Album(id=album_id, name=name, created_at=datetime(2024, 1, 1, 12, minute, tzinfo=timezone.utc))


def test_missing_manifest_loads_empty(tmp_path: Path) -> None:
    assert AlbumManifest(tmp_path).load() == []


def test_save_and_load_preserves_order(tmp_path: Path) -> None:
    manifest = AlbumManifest(tmp_path)
    manifest.save([_album("a1", "Trip", 0), _album("a2", "Family", 1)])

    loaded = AlbumManifest(tmp_path).load()

    assert [album.id for album in loaded] == ["a1", "a2"]
    assert loaded[0].name == "Trip"
    assert loaded[0].created_at == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_reserved_album_is_never_written(tmp_path: Path) -> None:
    manifest = AlbumManifest(tmp_path)
    reserved = Album(id="all", name="All Photos", created_at=datetime.now(timezone.utc), is_default=True)
    manifest.save([reserved, _album("a1", "Trip")])

    payload = json.loads(manifest.path.read_text(encoding="utf-8"))

    assert payload["schema"] == ALBUM_MANIFEST_SCHEMA
    assert [entry["id"] for entry in payload["albums"]] == ["a1"]


def test_invalid_entries_are_skipped(tmp_path: Path) -> None:
    manifest = AlbumManifest(tmp_path)
    manifest.path.write_text(
        json.dumps(
            {
                "schema": ALBUM_MANIFEST_SCHEMA,
                "albums": [
                    {"id": "a1", "name": "Trip", "created_at": "2024-01-01T12:00:00+00:00"},
                    {"id": "all", "name": "Impostor", "created_at": "2024-01-01T12:00:00+00:00"},
                    {"id": "a1", "name": "Duplicate", "created_at": "2024-01-01T12:00:00+00:00"},
                    {"id": "a2", "name": "No date"},
                    "garbage",
                ],
            }
        ),
        encoding="utf-8",
    )

    loaded = manifest.load()

    assert [(album.id, album.name) for album in loaded] == [("a1", "Trip")]


def test_corrupt_manifest_raises_without_backup(tmp_path: Path) -> None:
    manifest = AlbumManifest(tmp_path)
    manifest.path.write_text("{broken", encoding="utf-8")

    with pytest.raises(ManifestInvalidError):
        manifest.load()


def test_corrupt_manifest_falls_back_to_latest_backup(tmp_path: Path) -> None:
    backups = tmp_path / "backups"
    manifest = AlbumManifest(tmp_path, backup_dir=backups)
    manifest.save([_album("a1", "Trip")])
    # The second save backs up the first document.
    manifest.save([_album("a1", "Trip"), _album("a2", "Family", 1)])
    manifest.path.write_text("{broken", encoding="utf-8")

    loaded = manifest.load()

    assert [album.id for album in loaded] == ["a1"]
