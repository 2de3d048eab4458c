from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from iGallery.media_classifier import (
    classify_media,
    guess_media_type,
    payload_from_path,
    resolve_payload_type,
    sniff_image_type,
)
from iGallery.models.media import MediaKind, MediaPayload


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.mark.parametrize(
    ("media_type", "expected"),
    [
        ("video/mp4", MediaKind.VIDEO),
        ("Video/QuickTime", MediaKind.VIDEO),
        ("image/heic", MediaKind.IMAGE),
        (None, MediaKind.IMAGE),
        ("application/octet-stream", MediaKind.IMAGE),
    ],
)
def test_classify_media(media_type, expected) -> None:
    assert classify_media(media_type) is expected


def test_sniff_recognises_png_header() -> None:
    assert sniff_image_type(_png_bytes()) == "image/png"
    assert sniff_image_type(b"definitely not an image") is None
    assert sniff_image_type(b"") is None


def test_guess_prefers_extension_then_content() -> None:
    assert guess_media_type("clip.mp4") == "video/mp4"
    assert guess_media_type("no-extension", _png_bytes()) == "image/png"
    assert guess_media_type("no-extension", b"???") is None


def test_declared_type_wins() -> None:
    payload = MediaPayload(name="clip.jpg", data=b"", media_type="video/mp4")
    assert resolve_payload_type(payload) == "video/mp4"


def test_payload_from_path(tmp_path: Path) -> None:
    source = tmp_path / "export"
    source.write_bytes(_png_bytes())

    payload = payload_from_path(source)

    assert payload.name == "export"
    assert payload.media_type == "image/png"
    assert payload.size == source.stat().st_size


def test_oversized_image_header_is_not_sniffed(oversized_png: bytes) -> None:
    assert sniff_image_type(oversized_png) is None
    assert guess_media_type("scan", oversized_png) is None
