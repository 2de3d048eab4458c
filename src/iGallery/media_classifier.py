"""Decide whether an incoming payload is a photo or a video."""

from __future__ import annotations

import io
import mimetypes
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .models.media import MediaKind, MediaPayload


def sniff_image_type(data: bytes) -> Optional[str]:
    """Return the MIME type Pillow recognises in *data*, or ``None``."""

    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            return Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None


def guess_media_type(name: str, data: bytes = b"") -> Optional[str]:
    """Guess a media type from the file name, falling back to the image header."""

    media_type, _ = mimetypes.guess_type(name)
    if media_type is not None:
        return media_type
    return sniff_image_type(data)


def classify_media(media_type: Optional[str]) -> MediaKind:
    """Map a declared media type onto :class:`MediaKind`.

    Anything that is not explicitly ``video/*`` is treated as an image.
    """

    if media_type and media_type.strip().lower().startswith("video/"):
        return MediaKind.VIDEO
    return MediaKind.IMAGE


def resolve_payload_type(payload: MediaPayload) -> Optional[str]:
    """Return the declared media type of *payload*, guessing when it is absent."""

    if payload.media_type:
        return payload.media_type
    return guess_media_type(payload.name, payload.data)


def payload_from_path(path: str | Path, *, media_type: Optional[str] = None) -> MediaPayload:
    """Read *path* into a payload, guessing the media type when not supplied."""

    source = Path(path)
    data = source.read_bytes()
    if media_type is None:
        media_type = guess_media_type(source.name, data)
    return MediaPayload(name=source.name, data=data, media_type=media_type)


__all__ = [
    "classify_media",
    "guess_media_type",
    "payload_from_path",
    "resolve_payload_type",
    "sniff_image_type",
]
