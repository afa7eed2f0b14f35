"""Logging wiring for ``sms_ledger``.

Only entrypoints configure output. Library code asks for a named child of the
``"sms_ledger"`` logger and stays silent until a host application (or the
``sms-ledger`` CLI) calls :func:`configure_logging`.

- ``configure_logging(...)`` attaches exactly one ``StreamHandler`` to the
  package logger; repeated calls are no-ops.
- ``get_logger(name)`` returns ``logging.getLogger(name)`` after making sure the
  package logger has a ``NullHandler`` while unconfigured.

The level comes from the explicit argument, else ``SMS_LEDGER_LOG_LEVEL``, else
``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "sms_ledger"
_LEVEL_ENV = "SMS_LEDGER_LOG_LEVEL"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
        raise ValueError(f"unknown log level: {level!r}")
    env_val = os.getenv(_LEVEL_ENV)
    if env_val and env_val.strip():
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach the package's single stream handler (first call wins).

    Parameters
    ----------
    level:
        ``int`` level or level name such as ``"DEBUG"``. ``None`` falls back to
        ``SMS_LEDGER_LOG_LEVEL`` and then ``INFO``.
    fmt:
        Optional ``logging.Formatter`` format string.
    stream:
        Destination stream; ``sys.stderr`` keeps stdout clean for CLI output.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _parse_level(level)
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(resolved)
    pkg_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; silent until logging is configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
