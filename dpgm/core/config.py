"""
dpgm/core/config.py

Runtime settings.

Defaults come from the environment:
  DPGM_BOUNDS_CHECK  "1"/"true" enables bounds-checked table indexing
  DPGM_LOG_LEVEL     level name for the ``dpgm`` logger (e.g. "DEBUG")
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Iterator


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Mutable process-wide settings.

    Attributes:
        bounds_check: Validate multi-indices on table element access.
        log_level: Level applied to the ``dpgm`` logger by ``get_logger``.
    """
    bounds_check: bool = False
    log_level: str = "WARNING"

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            bounds_check=_env_flag("DPGM_BOUNDS_CHECK", False),
            log_level=os.getenv("DPGM_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )


settings = Settings.from_env()


@contextmanager
def override(**kwargs) -> Iterator[Settings]:
    """Temporarily replace settings fields, restoring them on exit."""
    known = {f.name for f in fields(Settings)}
    for k in kwargs:
        if k not in known:
            raise KeyError(f"Unknown setting: {k}")
    saved = {k: getattr(settings, k) for k in kwargs}
    for k, v in kwargs.items():
        setattr(settings, k, v)
    try:
        yield settings
    finally:
        for k, v in saved.items():
            setattr(settings, k, v)
