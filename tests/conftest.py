import os
import struct
import sys
import zlib
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, List

import pytest

# Run Qt headless so the suite works without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from iGallery.library.manager import MediaLibrary  # noqa: E402
from iGallery.models.media import MediaPayload  # noqa: E402


class StepClock:
    """Deterministic clock: each call returns the next scheduled instant."""

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)) -> None:
        self._current = start
        self._step = step
        self._scheduled: List[datetime] = []

    def schedule(self, moments: Iterable[datetime]) -> None:
        self._scheduled.extend(moments)

    def __call__(self) -> datetime:
        if self._scheduled:
            return self._scheduled.pop(0)
        value = self._current
        self._current += self._step
        return value


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "Library"
    root.mkdir()
    return root


@pytest.fixture
def library(library_root: Path, clock: StepClock):
    lib = MediaLibrary.open(library_root, clock=clock)
    yield lib
    lib.close()


@pytest.fixture
def make_payload() -> Callable[..., MediaPayload]:
    def _make(name: str = "photo.jpg", data: bytes = b"\xff\xd8\xff-fake-jpeg", media_type: str = "image/jpeg"):
        return MediaPayload(name=name, data=data, media_type=media_type)

    return _make


def _png_chunk(kind: bytes, body: bytes) -> bytes:
    return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body) & 0xFFFFFFFF)


@pytest.fixture
def oversized_png() -> bytes:
    """A PNG header claiming 100000x100000 pixels, which Pillow refuses to open."""

    header = struct.pack(">IIBBBBB", 100_000, 100_000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00" * 16))
    )
