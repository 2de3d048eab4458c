"""Domain records handed out by the media library."""

from .media import Album, MediaItem, MediaKind, MediaPayload
from .results import AlbumCreation, BatchResult, ItemOutcome, LibrarySnapshot, RepairReport

__all__ = [
    "Album",
    "AlbumCreation",
    "BatchResult",
    "ItemOutcome",
    "LibrarySnapshot",
    "MediaItem",
    "MediaKind",
    "MediaPayload",
    "RepairReport",
]
