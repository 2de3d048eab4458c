"""Worker that stores a batch of payloads in the media library."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, List

from PySide6.QtCore import QObject, QRunnable, Signal

from ...config import ALL_ALBUM_ID
from ...models.media import MediaPayload
from ...utils.logging import get_logger

if TYPE_CHECKING:
    from ..manager import MediaLibrary

logger = get_logger()


class ImportSignals(QObject):
    """Signals for the import worker."""

    progressUpdated = Signal(int, int)  # done, total
    finished = Signal(object)  # BatchResult
    error = Signal(str)


class ImportWorker(QRunnable):
    """Run :meth:`MediaLibrary.add_items` on a pool thread.

    ``cancel()`` stops the batch between two items; items already stored stay
    in the library and the emitted result is flagged ``cancelled``.
    """

    def __init__(
        self,
        library: "MediaLibrary",
        payloads: List[MediaPayload],
        target_album_id: str = ALL_ALBUM_ID,
        signals: ImportSignals | None = None,
    ) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._library = library
        self._payloads = payloads
        self._target_album_id = target_album_id
        self._signals = signals or ImportSignals()
        self._cancel_event = threading.Event()

    @property
    def signals(self) -> ImportSignals:
        return self._signals

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self) -> None:
        try:
            result = self._library.add_items(
                self._payloads,
                self._target_album_id,
                cancel_event=self._cancel_event,
                progress=self._signals.progressUpdated.emit,
            )
        except Exception as exc:
            logger.error("Import into %s failed: %s", self._target_album_id, exc)
            self._signals.error.emit(str(exc))
            return
        logger.info(
            "Imported %d of %d payload(s) into %s",
            len(result.succeeded),
            len(self._payloads),
            self._target_album_id,
        )
        self._signals.finished.emit(result)
