"""The media library and the views derived from it."""

from .album_index import AlbumIndex, DateGroup
from .manager import MediaLibrary

__all__ = ["AlbumIndex", "DateGroup", "MediaLibrary"]
