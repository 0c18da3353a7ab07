# aliembed/logger.py
"""Logging setup for the service.

Everything the service writes goes through :data:`logger`. aiohttp's own
access log (one line per request, including every preview stream) shares
the handlers but has its own level, so a busy instance can keep request
lines out of the output without losing the service's warnings.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "AliEmbed"
ACCESS_LOGGER_NAME: Final[str] = "aiohttp.access"

_LevelT = Union[int, str]


def _handlers(log_file: str | Path | None, fmt: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(
                filename=str(log_file),
                maxBytes=5 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(fmt)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    access_level: _LevelT = "WARNING",
) -> logging.Logger:
    """
    Point the service logger and the aiohttp access logger at stdout and,
    optionally, a rotating *log_file*. Previous handlers are dropped, so the
    CLI can call this once per invocation.
    """
    handlers = _handlers(log_file, log_format)
    for name, lvl in ((LOGGER_NAME, level), (ACCESS_LOGGER_NAME, access_level)):
        lg = logging.getLogger(name)
        lg.setLevel(lvl)
        lg.handlers.clear()
        for handler in handlers:
            lg.addHandler(handler)
        lg.propagate = False
    return logging.getLogger(LOGGER_NAME)


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "LOGGER_NAME", "ACCESS_LOGGER_NAME", "DEFAULT_FORMAT"]
