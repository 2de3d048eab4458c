"""iGallery: a local media store for photos, videos and albums."""

import importlib.metadata as importlib_metadata

from .cache import AlbumManifest, BlobStore, HandleCache, MediaHandle, MetadataStore
from .errors import (
    IGalleryError,
    InvalidArgumentError,
    LibraryUnavailableError,
    ManifestInvalidError,
    NotFoundError,
    PartialFailureError,
    StorageUnavailableError,
)
from .library import AlbumIndex, DateGroup, MediaLibrary
from .media_classifier import payload_from_path
from .models import (
    Album,
    AlbumCreation,
    BatchResult,
    ItemOutcome,
    LibrarySnapshot,
    MediaItem,
    MediaKind,
    MediaPayload,
    RepairReport,
)
from .settings import Settings


def _detect_version() -> str:
    try:
        return importlib_metadata.version("igallery")
    except importlib_metadata.PackageNotFoundError:
        return "0.0.0+unknown"


__version__ = _detect_version()

__all__ = [
    "Album",
    "AlbumCreation",
    "AlbumIndex",
    "AlbumManifest",
    "BatchResult",
    "BlobStore",
    "DateGroup",
    "HandleCache",
    "IGalleryError",
    "InvalidArgumentError",
    "ItemOutcome",
    "LibrarySnapshot",
    "LibraryUnavailableError",
    "ManifestInvalidError",
    "MediaHandle",
    "MediaItem",
    "MediaKind",
    "MediaLibrary",
    "MediaPayload",
    "MetadataStore",
    "NotFoundError",
    "PartialFailureError",
    "RepairReport",
    "Settings",
    "StorageUnavailableError",
    "__version__",
    "payload_from_path",
]
