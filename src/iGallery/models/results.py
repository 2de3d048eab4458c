"""Result records returned by bulk and maintenance operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..errors import IGalleryError, PartialFailureError
from .media import Album, MediaItem


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    """Result of one per-item step inside a bulk operation."""

    item_id: str
    error: Optional[IGalleryError] = None
    label: Optional[str] = None
    """Human-readable hint such as the uploaded file name."""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Per-item outcomes of a bulk operation.

    Bulk operations never fail as a whole: successes stay applied and each
    failure is reported against the item that caused it. ``cancelled`` is set
    when a cancellation request stopped the batch before every input was
    visited; unvisited inputs have no outcome.
    """

    outcomes: Tuple[ItemOutcome, ...] = ()
    items: Tuple[MediaItem, ...] = ()
    cancelled: bool = False

    @property
    def succeeded(self) -> Tuple[str, ...]:
        return tuple(outcome.item_id for outcome in self.outcomes if outcome.ok)

    @property
    def failures(self) -> Tuple[ItemOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise :class:`PartialFailureError` when any item failed."""

        failures = self.failures
        if failures:
            raise PartialFailureError(
                f"{len(failures)} of {len(self.outcomes)} item(s) failed",
                self.outcomes,
            )


@dataclass(frozen=True, slots=True)
class AlbumCreation:
    """The created album plus the outcome of attaching its initial items."""

    album: Album
    attached: BatchResult = field(default_factory=BatchResult)


@dataclass(frozen=True, slots=True)
class RepairReport:
    """Inconsistencies found, and fixed, while loading a library."""

    dropped_records: Tuple[str, ...] = ()
    """Metadata records removed because their blob was missing."""

    orphan_blobs: Tuple[str, ...] = ()
    """Blobs deleted because no metadata record referenced them."""

    scrubbed_items: Tuple[str, ...] = ()
    """Items whose dangling album references were removed."""

    unreadable_records: Tuple[str, ...] = ()
    """Records skipped because they could not be parsed."""

    @property
    def clean(self) -> bool:
        return not (self.dropped_records or self.orphan_blobs or self.scrubbed_items or self.unreadable_records)


@dataclass(frozen=True, slots=True)
class LibrarySnapshot:
    """Consistent, immutable copy of the library state at one version."""

    version: int
    items: Tuple[MediaItem, ...]
    albums: Tuple[Album, ...]
    active_album_id: str

    def item_map(self) -> Dict[str, MediaItem]:
        return {item.id: item for item in self.items}


__all__ = ["AlbumCreation", "BatchResult", "ItemOutcome", "LibrarySnapshot", "RepairReport"]
