"""Typed errors raised by the media store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

if TYPE_CHECKING:
    from .models.results import ItemOutcome


class IGalleryError(Exception):
    """Base exception for all media store errors."""


class NotFoundError(IGalleryError):
    """Raised when an operation references an identifier that does not exist."""

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class InvalidArgumentError(IGalleryError):
    """Raised for blank names and attempts to mutate the reserved album."""


class StorageUnavailableError(IGalleryError):
    """Raised when a backing store cannot be read or written."""


class LibraryUnavailableError(IGalleryError):
    """Raised when the library root cannot be opened."""


class ManifestInvalidError(IGalleryError):
    """Raised when the persisted album manifest cannot be parsed."""


class PartialFailureError(IGalleryError):
    """Raised when some steps of a multi-entity operation failed.

    ``outcomes`` lists every item touched by the operation, successful or not,
    so callers can report the failures without losing the successes.
    """

    def __init__(self, message: str, outcomes: Sequence["ItemOutcome"]) -> None:
        self.outcomes: Tuple["ItemOutcome", ...] = tuple(outcomes)
        super().__init__(message)

    @property
    def failures(self) -> Tuple["ItemOutcome", ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)


__all__ = [
    "IGalleryError",
    "InvalidArgumentError",
    "LibraryUnavailableError",
    "ManifestInvalidError",
    "NotFoundError",
    "PartialFailureError",
    "StorageUnavailableError",
]
