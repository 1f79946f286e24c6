"""Centralized logging configuration for the ``kite_insights`` package.

- ``configure_logging(...)``: attach a single ``RichHandler`` to the package
  root logger (``"kite_insights"``). Called once by entrypoints such as the
  CLI.
- ``get_logger(name)``: acquire a logger by name. Until logging is configured
  the package root logger carries a ``NullHandler`` so library use stays
  silent.

Library modules never attach their own handlers.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_PKG_LOGGER_NAME = "kite_insights"
_LEVEL_ENV_VAR = "KITE_INSIGHTS_LOG_LEVEL"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR)
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    console: Optional[Console] = None,
) -> None:
    """Configure the package root logger exactly once.

    Args:
        level: Logging level as ``int`` or level name (e.g. ``"DEBUG"``). If
            None, ``KITE_INSIGHTS_LOG_LEVEL`` is used when set, else INFO.
        console: Optional rich console to render to (defaults to stderr).
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, ensuring a NullHandler before configuration."""
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
