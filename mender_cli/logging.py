"""Logging configuration helpers."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]
HTTP_LOGGERS = ("aiohttp", "asyncio")


def configure_logging(
    level: str = "WARNING", *, log_path: Optional[Path] = None, verbose_http: bool = False
) -> None:
    """Send log records to stderr, and also to ``log_path`` when given.

    Command output goes to stdout, so logs never mix with piped results.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    logging.captureWarnings(True)

    http_level = logging.NOTSET if verbose_http else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)


def level_for_verbosity(base_level: str, verbosity: int) -> str:
    """Lower ``base_level`` one step per ``-v`` flag, never below DEBUG."""

    name = base_level.upper()
    index = LEVELS.index(name) if name in LEVELS else LEVELS.index("WARNING")
    return LEVELS[min(len(LEVELS) - 1, index + max(0, verbosity))]
