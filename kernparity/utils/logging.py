from __future__ import annotations

import logging
import os
from typing import Optional

import coloredlogs

from .. import config as _cfg

_LOGGER_CREATED: dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(level_name: Optional[str]) -> int:
    if not level_name:
        return logging.INFO
    name = str(level_name).upper()
    level = getattr(logging, name, logging.INFO)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str = "kernparity") -> logging.Logger:
    if name in _LOGGER_CREATED:
        return _LOGGER_CREATED[name]
    logger = logging.getLogger(name)
    if not logger.handlers:
        level = _resolve_level(os.environ.get("KERNPARITY_LOG_LEVEL") or _cfg.get("KERNPARITY_LOG_LEVEL"))
        logger.setLevel(level)
        coloredlogs.install(level=level, logger=logger, fmt=LOG_FORMAT)
        logger.propagate = False
    _LOGGER_CREATED[name] = logger
    return logger


def set_level(level_name: str) -> None:
    """Apply a new level to every logger handed out so far."""
    level = _resolve_level(level_name)
    for logger in _LOGGER_CREATED.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
