"""Console logging for Lendtrack.

Everything under the ``lendtrack`` logger tree shares one handler. Requests
are already logged by the access middleware on ``lendtrack.access``, so
uvicorn's own access logger is held at WARNING to avoid printing each
request twice.
"""

from __future__ import annotations

import logging
from typing import Final

from lendtrack.config import config

_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"
_HANDLER_NAME: Final[str] = "lendtrack-console"

# Their INFO output duplicates ours or is per-statement noise.
_QUIETED: Final[tuple[str, ...]] = ("uvicorn.access", "aiosqlite")


def resolve_level(value: str | None, *, debug: bool = False) -> int:
    """Translate ``LOG_LEVEL`` (name or number) into a logging level.

    Unset falls back to DEBUG or INFO depending on ``debug``; unknown names
    fall back to INFO.
    """
    if not value or not value.strip():
        return logging.DEBUG if debug else logging.INFO

    value = value.strip()
    if value.isdigit():
        return int(value)

    numeric = logging.getLevelName(value.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def configure_logging(*, debug: bool = False, level: str | None = None) -> int:
    """Attach the console handler and set levels; safe to call repeatedly.

    ``level`` defaults to ``config.LOG_LEVEL``. Returns the level applied.
    """
    if level is None:
        level = config.LOG_LEVEL
    resolved = resolve_level(level, debug=debug)

    app_logger = logging.getLogger("lendtrack")
    if not any(h.get_name() == _HANDLER_NAME for h in app_logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(_FORMAT, _DATEFMT))
        app_logger.addHandler(handler)
    app_logger.setLevel(resolved)
    app_logger.propagate = False

    for name in _QUIETED:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    return resolved
