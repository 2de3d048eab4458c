"""Date-grouped, searchable views over the media library."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, timezone
from typing import Dict, List, Optional, Tuple

from ..config import ALL_ALBUM_ID, INDEX_MEMO_SIZE
from ..models.media import MediaItem
from ..models.results import LibrarySnapshot
from .manager import MediaLibrary


@dataclass(frozen=True, slots=True)
class DateGroup:
    """Items created on one calendar day (UTC), in arrival order."""

    date: date
    items: Tuple[MediaItem, ...]

    def __len__(self) -> int:
        return len(self.items)


_ViewKey = Tuple[int, str, str]


def _normalize_query(search_text: Optional[str]) -> str:
    return (search_text or "").strip().casefold()


def build_view(snapshot: LibrarySnapshot, album_id: str, query: str) -> Tuple[DateGroup, ...]:
    """Filter *snapshot* to *album_id* and *query* and group it by day.

    *query* must already be normalised. Groups are ordered newest day first;
    items inside a group keep the order in which they were added.
    """

    known = {album.id for album in snapshot.albums}
    if album_id not in known:
        return ()

    buckets: Dict[date, List[MediaItem]] = {}
    for item in snapshot.items:
        if album_id != ALL_ALBUM_ID and album_id not in item.album_ids:
            continue
        if query and query not in item.name.casefold():
            continue
        day = item.created_at.astimezone(timezone.utc).date()
        buckets.setdefault(day, []).append(item)

    return tuple(
        DateGroup(date=day, items=tuple(buckets[day]))
        for day in sorted(buckets, reverse=True)
    )


class AlbumIndex:
    """Derived, read-only index answering "what does album X show".

    Views are recomputed from :meth:`MediaLibrary.snapshot` and memoised on
    the snapshot version, so any mutation of the library invalidates them
    without explicit notifications.
    """

    def __init__(self, library: MediaLibrary, *, memo_size: int = INDEX_MEMO_SIZE) -> None:
        self._library = library
        self._memo_size = max(1, memo_size)
        self._memo: "OrderedDict[_ViewKey, Tuple[DateGroup, ...]]" = OrderedDict()
        self._lock = threading.Lock()

    def view(self, album_id: str = ALL_ALBUM_ID, search_text: str = "") -> Tuple[DateGroup, ...]:
        """Return the date groups shown for *album_id* filtered by *search_text*.

        The search is a case-insensitive substring match on the item name. An
        unknown album yields an empty view.
        """

        snapshot = self._library.snapshot()
        return self._view(snapshot, album_id, _normalize_query(search_text))

    def flatten(self, album_id: str = ALL_ALBUM_ID, search_text: str = "") -> Tuple[MediaItem, ...]:
        """Return the items of :meth:`view` in display order."""

        return tuple(item for group in self.view(album_id, search_text) for item in group.items)

    def count(self, album_id: str = ALL_ALBUM_ID) -> int:
        return sum(len(group) for group in self.view(album_id))

    def neighbors(
        self,
        item_id: str,
        album_id: str = ALL_ALBUM_ID,
        search_text: str = "",
    ) -> Tuple[Optional[MediaItem], Optional[MediaItem]]:
        """Return the items displayed before and after *item_id*.

        Both are ``None`` when *item_id* is not part of the view.
        """

        items = self.flatten(album_id, search_text)
        for position, item in enumerate(items):
            if item.id == item_id:
                previous = items[position - 1] if position > 0 else None
                following = items[position + 1] if position + 1 < len(items) else None
                return previous, following
        return None, None

    def clear(self) -> None:
        with self._lock:
            self._memo.clear()

    def _view(self, snapshot: LibrarySnapshot, album_id: str, query: str) -> Tuple[DateGroup, ...]:
        key = (snapshot.version, album_id, query)
        with self._lock:
            cached = self._memo.get(key)
            if cached is not None:
                self._memo.move_to_end(key)
                return cached

        groups = build_view(snapshot, album_id, query)

        with self._lock:
            self._memo[key] = groups
            self._memo.move_to_end(key)
            while len(self._memo) > self._memo_size:
                self._memo.popitem(last=False)
        return groups


__all__ = ["AlbumIndex", "DateGroup", "build_view"]
