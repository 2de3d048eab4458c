from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from iGallery.config import SETTINGS_FILE_NAME, WORK_DIR_NAME
from iGallery.library.manager import MediaLibrary
from iGallery.utils.logging import get_logger, set_level


@pytest.fixture(autouse=True)
def restore_level():
    previous = get_logger().level
    yield
    get_logger().setLevel(previous)


def test_set_level_accepts_names_and_numbers() -> None:
    assert set_level("debug") == logging.DEBUG
    assert set_level(logging.ERROR) == logging.ERROR
    assert get_logger().level == logging.ERROR


def test_unknown_level_is_ignored() -> None:
    set_level("WARNING")

    assert set_level("chatty") == logging.WARNING
    assert set_level(None) == logging.WARNING  # type: ignore[arg-type]


def test_child_loggers_follow_package_level() -> None:
    set_level("ERROR")
    child = logging.getLogger("iGallery.cache.index_store.connection_pool")
    assert child.getEffectiveLevel() == logging.ERROR


def test_library_applies_level_from_settings(tmp_path: Path) -> None:
    work_dir = tmp_path / WORK_DIR_NAME
    work_dir.mkdir()
    (work_dir / SETTINGS_FILE_NAME).write_text(json.dumps({"logging": {"level": "WARNING"}}), encoding="utf-8")

    library = MediaLibrary.open(tmp_path)
    try:
        assert get_logger().level == logging.WARNING
    finally:
        library.close()
