"""Metadata storage package.

The media library keeps two independent SQLite databases under the library's
work directory:

- ``library.db`` holds one JSON record per media item (:class:`MetadataStore`)
- ``blobs.db`` holds the raw payloads (:class:`iGallery.cache.blob_store.BlobStore`)

Both share :class:`ConnectionPool`, which bounds every wait so a locked or
missing database is reported instead of hanging.

Usage:
    from iGallery.cache.index_store import MetadataStore
    store = MetadataStore(library_root / WORK_DIR_NAME)
    store.put({"id": "abc", "name": "beach.jpg"})
    records = store.get_all()
"""
from .connection_pool import ConnectionPool
from .repository import MetadataStore

__all__ = [
    "ConnectionPool",
    "MetadataStore",
]
