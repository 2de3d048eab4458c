"""Worker that deletes a batch of media items."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, List

from PySide6.QtCore import QObject, QRunnable, Signal

from ...utils.logging import get_logger

if TYPE_CHECKING:
    from ..manager import MediaLibrary

logger = get_logger()


class DeleteSignals(QObject):
    """Signals for the delete worker."""

    progressUpdated = Signal(int, int)
    finished = Signal(object)
    error = Signal(str)


class DeleteWorker(QRunnable):
    """Run :meth:`MediaLibrary.delete_items` on a pool thread."""

    def __init__(
        self,
        library: "MediaLibrary",
        item_ids: List[str],
        signals: DeleteSignals | None = None,
    ) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._library = library
        self._item_ids = item_ids
        self._signals = signals or DeleteSignals()
        self._cancel_event = threading.Event()

    @property
    def signals(self) -> DeleteSignals:
        return self._signals

    def cancel(self) -> None:
        self._cancel_event.set()

    def run(self) -> None:
        try:
            result = self._library.delete_items(
                self._item_ids,
                cancel_event=self._cancel_event,
                progress=self._signals.progressUpdated.emit,
            )
        except Exception as exc:
            logger.error("Deleting %d item(s) failed: %s", len(self._item_ids), exc)
            self._signals.error.emit(str(exc))
            return
        self._signals.finished.emit(result)
