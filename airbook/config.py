"""Environment driven settings for the booking engine."""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

DATABASE_URL = os.environ.get("AIRBOOK_DATABASE_URL", "sqlite+pysqlite:///airbook.db")
LOG_LEVEL = os.environ.get("AIRBOOK_LOG_LEVEL", "INFO")
REAPER_INTERVAL_SECONDS = float(os.environ.get("AIRBOOK_REAPER_INTERVAL", 60))
SQL_ECHO = os.environ.get("AIRBOOK_SQL_ECHO", "0").strip().lower() in {"1", "true", "yes"}

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger."""

    name = (level or LOG_LEVEL).upper()
    if name not in _VALID_LEVELS:
        raise ValueError(f"Log level must be one of: {', '.join(_VALID_LEVELS)}")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(name)


__all__ = [
    "DATABASE_URL",
    "LOG_LEVEL",
    "REAPER_INTERVAL_SECONDS",
    "SQL_ECHO",
    "configure_logging",
]
