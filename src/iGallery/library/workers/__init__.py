"""Background workers that run bulk library operations off the UI thread."""

from .delete_worker import DeleteSignals, DeleteWorker
from .import_worker import ImportSignals, ImportWorker

__all__ = [
    "DeleteSignals",
    "DeleteWorker",
    "ImportSignals",
    "ImportWorker",
]
