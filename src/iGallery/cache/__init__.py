"""Persistence layers and the process-local handle cache."""

from .album_manifest import AlbumManifest
from .blob_store import BlobStore
from .handle_cache import HandleCache, MediaHandle
from .index_store import ConnectionPool, MetadataStore

__all__ = [
    "AlbumManifest",
    "BlobStore",
    "ConnectionPool",
    "HandleCache",
    "MediaHandle",
    "MetadataStore",
]
