from __future__ import annotations

from datetime import datetime, timezone

import pytest

from iGallery.errors import NotFoundError
from iGallery.models import BatchResult, ItemOutcome, MediaItem, MediaKind


def _item(**overrides) -> MediaItem:
    values = dict(
        id="i1",
        name="a.jpg",
        blob_ref="b1",
        kind=MediaKind.IMAGE,
        size_bytes=10,
        created_at=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return MediaItem(**values)


def test_album_ids_always_start_with_reserved_album() -> None:
    item = _item(album_ids=("trip", "trip", "all", "family"))
    assert item.album_ids == ("all", "trip", "family")
    assert item.with_album_ids([]).album_ids == ("all",)


def test_record_round_trip_keeps_timezone() -> None:
    item = _item(album_ids=("all", "trip"), media_type="image/jpeg")
    assert MediaItem.from_record(item.to_record()) == item


@pytest.mark.parametrize(
    "record",
    [
        {"blob_ref": "b", "created_at": "2024-05-01T09:00:00+00:00"},
        {"id": "x", "created_at": "2024-05-01T09:00:00+00:00"},
        {"id": "x", "blob_ref": "b", "created_at": "yesterday"},
        {"id": "x", "blob_ref": "b", "created_at": "2024-05-01T09:00:00Z", "kind": "audio"},
    ],
)
def test_malformed_records_are_rejected(record) -> None:
    with pytest.raises(ValueError):
        MediaItem.from_record(record)


def test_batch_result_partitions_outcomes() -> None:
    result = BatchResult(
        outcomes=(ItemOutcome("a"), ItemOutcome("b", NotFoundError("Media item", "b"))),
    )

    assert result.succeeded == ("a",)
    assert [outcome.item_id for outcome in result.failures] == ["b"]
    assert not result.ok
