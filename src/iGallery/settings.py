"""Persisted library settings addressed by dotted keys."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Optional

from .config import (
    DEFAULT_ALBUM_NAME,
    DEFAULT_POOL_SIZE,
    DEFAULT_STORAGE_TIMEOUT,
    SETTINGS_FILE_NAME,
)
from .errors import ManifestInvalidError, StorageUnavailableError
from .utils.jsonio import read_json, write_json
from .utils.logging import get_logger

logger = get_logger()

DEFAULT_SETTINGS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
    },
    "storage": {
        "timeout": DEFAULT_STORAGE_TIMEOUT,
        "pool_size": DEFAULT_POOL_SIZE,
    },
    "library": {
        "default_album_name": DEFAULT_ALBUM_NAME,
        "manifest_backups": False,
    },
}


class Settings:
    """Small JSON-backed settings store.

    ``settings.get("storage.timeout", 5.0)`` walks nested objects; values that
    are missing on disk fall back to :data:`DEFAULT_SETTINGS` and then to the
    supplied default.
    """

    def __init__(self, path: Optional[Path] = None, data: Optional[Dict[str, Any]] = None) -> None:
        self.path = path
        self._data: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        if data:
            self._merge(self._data, data)

    @classmethod
    def load(cls, work_dir: Path) -> Settings:
        """Read ``settings.json`` from *work_dir*; a broken file is ignored."""

        path = work_dir / SETTINGS_FILE_NAME
        try:
            data = read_json(path, default={})
        except ManifestInvalidError as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            data = {}
        return cls(path, data)

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def set(self, key: str, value: Any) -> None:
        """Update *key* and write the settings file immediately."""

        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
        if self.path is not None:
            try:
                write_json(self.path, self._data)
            except OSError as exc:
                raise StorageUnavailableError(f"Cannot write settings {self.path}: {exc}") from exc

    @classmethod
    def _merge(cls, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                cls._merge(target[key], value)
            else:
                target[key] = value


__all__ = ["DEFAULT_SETTINGS", "Settings"]
