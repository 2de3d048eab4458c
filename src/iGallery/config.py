"""Static configuration shared across the media store."""

from __future__ import annotations

WORK_DIR_NAME = ".iGallery"
"""Hidden directory under the library root that holds every persisted store."""

BLOB_DB_NAME = "blobs.db"
METADATA_DB_NAME = "library.db"
ALBUM_MANIFEST_NAME = "albums.json"
SETTINGS_FILE_NAME = "settings.json"
BACKUP_DIR_NAME = "backups"

ALBUM_MANIFEST_SCHEMA = "iGallery/albums@1"

ALL_ALBUM_ID = "all"
"""Identifier of the implicit album that contains every media item."""

DEFAULT_ALBUM_NAME = "All Photos"

# Storage calls never block forever; expiry is reported as unavailability.
DEFAULT_STORAGE_TIMEOUT = 5.0
DEFAULT_POOL_SIZE = 4

HANDLE_DIR_PREFIX = "iGallery-handles-"
"""Prefix of the per-process directory that backs materialised handles."""

INDEX_MEMO_SIZE = 32
