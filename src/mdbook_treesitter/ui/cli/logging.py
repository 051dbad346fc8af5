"""Process-wide logging setup for the preprocessor binary."""

from __future__ import annotations

import logging
import os
import sys


LOG_ENV_VAR = "MDBOOK_LOG"
LOG_FORMAT = "%(asctime)s [%(levelname)s] (%(name)s): %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = logging.INFO


def resolve_level(raw: str | None) -> int:
    """Translate a level name such as ``debug`` into a :mod:`logging` level."""
    if not raw:
        return DEFAULT_LEVEL
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else DEFAULT_LEVEL


def init_logging(verbosity: int = 0) -> logging.Logger:
    """Attach a stderr handler to the package logger, honouring ``MDBOOK_LOG``."""
    package_logger = logging.getLogger("mdbook_treesitter")
    level = resolve_level(os.environ.get(LOG_ENV_VAR))
    if verbosity > 0:
        level = min(level, logging.DEBUG)

    handler = next(
        (h for h in package_logger.handlers if getattr(h, "_mdbook_treesitter", False)), None
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler._mdbook_treesitter = True  # type: ignore[attr-defined]
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        package_logger.addHandler(handler)
    else:
        handler.setStream(sys.stderr)

    package_logger.setLevel(level)
    return package_logger


__all__ = ["DATE_FORMAT", "LOG_ENV_VAR", "LOG_FORMAT", "init_logging", "resolve_level"]
