"""
dpgm/core/log.py

Logger factory. Library modules log through ``get_logger(__name__)``; the
``dpgm`` root logger carries only a NullHandler so applications decide
where records go.
"""

from __future__ import annotations

import logging

from dpgm.core.config import settings

_ROOT = "dpgm"
_LOGGER_CACHE: dict[str, logging.Logger] = {}


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not any(isinstance(h, logging.NullHandler) for h in root.handlers):
        root.addHandler(logging.NullHandler())
    level = logging.getLevelName(settings.log_level)
    if isinstance(level, int):
        root.setLevel(level)
    return root


def get_logger(name: str = _ROOT) -> logging.Logger:
    if name in _LOGGER_CACHE:
        return _LOGGER_CACHE[name]
    _configure_root()
    logger = logging.getLogger(name)
    _LOGGER_CACHE[name] = logger
    return logger
