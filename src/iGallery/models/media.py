"""Media items, albums and the payloads they are created from."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from ..config import ALL_ALBUM_ID


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


def _parse_timestamp(value: object) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp: {value!r}")
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_album_ids(album_ids: Iterable[str]) -> Tuple[str, ...]:
    """Return *album_ids* de-duplicated with the reserved album first."""

    ordered = [ALL_ALBUM_ID]
    for album_id in album_ids:
        if album_id and album_id not in ordered:
            ordered.append(album_id)
    return tuple(ordered)


@dataclass(frozen=True, slots=True)
class MediaItem:
    """Immutable view of one stored photo or video."""

    id: str
    name: str
    blob_ref: str
    kind: MediaKind
    size_bytes: int
    created_at: datetime
    album_ids: Tuple[str, ...] = (ALL_ALBUM_ID,)
    media_type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "album_ids", normalize_album_ids(self.album_ids))

    @property
    def is_video(self) -> bool:
        return self.kind == MediaKind.VIDEO

    def in_album(self, album_id: str) -> bool:
        return album_id == ALL_ALBUM_ID or album_id in self.album_ids

    def with_name(self, name: str) -> MediaItem:
        return replace(self, name=name)

    def with_album_ids(self, album_ids: Iterable[str]) -> MediaItem:
        return replace(self, album_ids=normalize_album_ids(album_ids))

    def to_record(self) -> Dict[str, Any]:
        """Serialise into the JSON-compatible record kept by the metadata store."""

        return {
            "id": self.id,
            "name": self.name,
            "blob_ref": self.blob_ref,
            "kind": self.kind.value,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
            "album_ids": list(self.album_ids),
            "media_type": self.media_type,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> MediaItem:
        """Rebuild an item from a metadata record; raises ``ValueError`` if malformed."""

        item_id = record.get("id")
        blob_ref = record.get("blob_ref")
        if not isinstance(item_id, str) or not item_id:
            raise ValueError(f"Record without id: {record!r}")
        if not isinstance(blob_ref, str) or not blob_ref:
            raise ValueError(f"Record {item_id} has no blob reference")
        album_ids = record.get("album_ids") or []
        if not isinstance(album_ids, list):
            raise ValueError(f"Record {item_id} has malformed album ids")
        size = record.get("size_bytes", 0)
        media_type = record.get("media_type")
        return cls(
            id=item_id,
            name=str(record.get("name") or ""),
            blob_ref=blob_ref,
            kind=MediaKind(record.get("kind", MediaKind.IMAGE.value)),
            size_bytes=int(size) if isinstance(size, (int, float)) else 0,
            created_at=_parse_timestamp(record.get("created_at")),
            album_ids=tuple(str(album_id) for album_id in album_ids),
            media_type=media_type if isinstance(media_type, str) else None,
        )


@dataclass(frozen=True, slots=True)
class Album:
    """Immutable view of an album, including the reserved "all" album."""

    id: str
    name: str
    created_at: datetime
    is_default: bool = False

    def with_name(self, name: str) -> Album:
        return replace(self, name=name)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Album:
        album_id = record.get("id")
        name = record.get("name")
        if not isinstance(album_id, str) or not album_id or album_id == ALL_ALBUM_ID:
            raise ValueError(f"Invalid album id in record: {record!r}")
        if not isinstance(name, str):
            raise ValueError(f"Album {album_id} has no name")
        return cls(id=album_id, name=name, created_at=_parse_timestamp(record.get("created_at")))


@dataclass(frozen=True)
class MediaPayload:
    """Raw bytes plus the information the uploader declared about them."""

    name: str
    data: bytes = field(repr=False)
    media_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


__all__ = [
    "Album",
    "MediaItem",
    "MediaKind",
    "MediaPayload",
    "normalize_album_ids",
]
