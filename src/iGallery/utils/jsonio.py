"""JSON document helpers with atomic replacement and optional backups."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import ManifestInvalidError

_REPLACE_ATTEMPTS = 5


def read_json(path: Path, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Read the JSON object stored at *path*.

    A missing file yields a copy of *default* when one is supplied; otherwise it
    is reported as :class:`ManifestInvalidError` just like malformed content.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        if default is not None:
            return dict(default)
        raise ManifestInvalidError(f"JSON file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestInvalidError(f"Invalid JSON data in {path}") from exc
    if not isinstance(payload, dict):
        raise ManifestInvalidError(f"Expected a JSON object in {path}")
    return payload


def atomic_write_text(path: Path, data: str) -> None:
    """Write *data* to a sibling temp file and swap it into place."""

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    # Another process (indexers, antivirus) can hold either file for a moment,
    # so the swap is retried with a short back-off before giving up.
    for attempt in range(_REPLACE_ATTEMPTS):
        try:
            tmp_path.replace(path)
            return
        except PermissionError:
            if attempt == _REPLACE_ATTEMPTS - 1:
                tmp_path.unlink(missing_ok=True)
                raise
            time.sleep(0.05 * (attempt + 1))


def _write_backup(path: Path, backup_dir: Path) -> None:
    if not path.exists():
        return
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    backup_path = backup_dir / f"{path.stem}-{timestamp}{path.suffix}"
    backup_path.write_bytes(path.read_bytes())


def write_json(path: Path, data: Dict[str, Any], *, backup_dir: Optional[Path] = None) -> None:
    """Serialise *data* into *path* atomically, keeping a backup when asked."""

    if backup_dir is not None:
        _write_backup(path, backup_dir)
    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
    atomic_write_text(path, payload)


__all__ = ["atomic_write_text", "read_json", "write_json"]
