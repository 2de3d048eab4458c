from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from iGallery.config import ALL_ALBUM_ID
from iGallery.library.album_index import AlbumIndex


def _at(day: int, hour: int) -> datetime:
    return datetime(2024, 5, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def index(library) -> AlbumIndex:
    return AlbumIndex(library)


@pytest.fixture
def populated(library, clock, make_payload):
    clock.schedule([_at(1, 8), _at(3, 9), _at(1, 20), _at(3, 7)])
    items = library.add_items(
        [
            make_payload("Beach.jpg"),
            make_payload("mountain.jpg"),
            make_payload("beach-sunset.jpg"),
            make_payload("city.mp4", media_type="video/mp4"),
        ]
    ).items
    return {item.name: item for item in items}


def test_groups_newest_day_first_in_arrival_order(index, populated) -> None:
    groups = index.view()

    assert [group.date for group in groups] == [date(2024, 5, 3), date(2024, 5, 1)]
    assert [item.name for item in groups[0].items] == ["mountain.jpg", "city.mp4"]
    assert [item.name for item in groups[1].items] == ["Beach.jpg", "beach-sunset.jpg"]


def test_search_is_case_insensitive_substring(index, populated) -> None:
    names = [item.name for item in index.flatten(search_text="  BEACH ")]

    assert names == ["Beach.jpg", "beach-sunset.jpg"]
    assert index.view(search_text="nothing-matches") == ()


def test_album_filter(library, index, populated) -> None:
    trip = library.create_album("Trip", [populated["Beach.jpg"].id, populated["city.mp4"].id]).album

    assert [item.name for item in index.flatten(trip.id)] == ["city.mp4", "Beach.jpg"]
    assert index.count(trip.id) == 2
    assert index.count(ALL_ALBUM_ID) == 4


def test_unknown_album_yields_empty_view(index, populated) -> None:
    assert index.view("missing") == ()
    assert index.count("missing") == 0


def test_view_is_memoised_until_library_changes(library, index, populated) -> None:
    first = index.view()
    assert index.view() is first

    library.rename_item(populated["city.mp4"].id, "downtown.mp4")

    refreshed = index.view()
    assert refreshed is not first
    assert "downtown.mp4" in [item.name for group in refreshed for item in group.items]


def test_memo_is_bounded(library, populated) -> None:
    small = AlbumIndex(library, memo_size=2)
    first = small.view(search_text="a")
    assert first
    small.view(search_text="b")
    small.view(search_text="c")

    assert small.view(search_text="a") is not first


def test_deleted_album_view_becomes_empty(library, index, populated) -> None:
    trip = library.create_album("Trip", [populated["Beach.jpg"].id]).album
    assert index.count(trip.id) == 1

    library.delete_album(trip.id)

    assert index.view(trip.id) == ()
    assert index.count(ALL_ALBUM_ID) == 4


def test_neighbors_follow_display_order(index, populated) -> None:
    order = [item.name for item in index.flatten()]
    assert order == ["mountain.jpg", "city.mp4", "Beach.jpg", "beach-sunset.jpg"]

    previous, following = index.neighbors(populated["city.mp4"].id)
    assert previous.name == "mountain.jpg"
    assert following.name == "Beach.jpg"

    previous, following = index.neighbors(populated["mountain.jpg"].id)
    assert previous is None
    assert following.name == "city.mp4"

    assert index.neighbors(populated["mountain.jpg"].id, search_text="beach") == (None, None)
