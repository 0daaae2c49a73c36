"""Centralized logging configuration for the ``csv_ledger`` package.

- ``configure_logging(...)``: attach one ``StreamHandler`` to the package
  root logger (``"csv_ledger"``). Called once by the CLI at startup.
- ``get_logger(name)``: acquire a logger by name, ensuring the package root
  logger carries a ``NullHandler`` when nothing has been configured so that
  library use stays silent.

Library modules never attach handlers of their own; they call
``get_logger("csv_ledger.<module>")``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "csv_ledger"
_LEVEL_ENV_VAR = "CSV_LEDGER_LOG_LEVEL"
_CONFIGURED = False


def _level_from(value: int | str | None) -> int | None:
    """Return the numeric level for ``value``, or ``None`` if unrecognized."""

    if isinstance(value, int):
        return value
    if not value or not value.strip():
        return None
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    return numeric if isinstance(numeric, int) else None


def _resolve_level(level: int | str | None) -> int:
    # Explicit argument, then the environment, then INFO.
    for candidate in (level, os.getenv(_LEVEL_ENV_VAR)):
        resolved = _level_from(candidate)
        if resolved is not None:
            return resolved
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        ``int`` or level name. When ``None`` the ``CSV_LEDGER_LOG_LEVEL``
        environment variable is consulted, then ``logging.INFO``.
    fmt:
        Optional format string; defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Output stream for the handler (defaults to ``sys.stderr`` at call
        time, so test runners that swap stderr are honored).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def reset_logging() -> None:
    """Return the package logger to its unconfigured, library-silent state."""

    global _CONFIGURED
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    logger.addHandler(logging.NullHandler())
    _CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with library-safe defaults."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
