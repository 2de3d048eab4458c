"""Package logger for iGallery."""

from __future__ import annotations

import logging
from typing import Optional, Union

LOGGER_NAME = "iGallery"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOGGER: Optional[logging.Logger] = None


def get_logger() -> logging.Logger:
    """Return the ``iGallery`` logger, attaching a stream handler on first use."""

    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger(LOGGER_NAME)
        if not _LOGGER.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            _LOGGER.addHandler(handler)
        _LOGGER.setLevel(logging.INFO)
    return _LOGGER


def set_level(level: Union[int, str]) -> int:
    """Apply *level* (``"DEBUG"``, ``"warning"``, ``10`` ...) to the package logger.

    Unknown names leave the current level untouched. Returns the level in effect.
    """

    target = get_logger()
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            target.warning("Ignoring unknown log level %r", level)
            return target.level
        level = resolved
    elif not isinstance(level, int):
        target.warning("Ignoring unknown log level %r", level)
        return target.level
    target.setLevel(level)
    return target.level


logger = get_logger()
