"""Centralized logging configuration for the ``statement_signals`` package.

Two public helpers:

- ``configure_logging(...)``: attach one ``StreamHandler`` to the package root
  logger (``"statement_signals"``). Host applications call it once at startup;
  the engine itself never does.
- ``get_logger(name)``: return a child logger. Until ``configure_logging`` has
  run, the package root carries a ``NullHandler`` so library use stays silent.

Engine modules only ever call ``get_logger("statement_signals.<module>")``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "statement_signals"
_LEVEL_ENV = "STATEMENT_SIGNALS_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    text = level.strip().upper()
    if text.isdigit():
        return int(text)
    numeric = logging.getLevelName(text)
    if isinstance(numeric, int):
        return numeric
    raise ValueError(f"unknown log level: {level!r}")


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> logging.Logger:
    """Attach a single stream handler to the package logger (idempotent).

    ``level`` falls back to ``STATEMENT_SIGNALS_LOG_LEVEL`` and then INFO.
    Returns the package root logger.
    """

    global _configured
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _configured:
        return pkg_logger

    for handler in list(pkg_logger.handlers):
        if isinstance(handler, logging.NullHandler):
            pkg_logger.removeHandler(handler)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    handler.setLevel(resolved)
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(resolved)
    # Host root handlers would otherwise print every record twice.
    pkg_logger.propagate = False

    _configured = True
    return pkg_logger


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
