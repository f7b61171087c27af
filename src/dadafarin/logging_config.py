"""Loguru logging configuration.

``setup_logging()`` is called once when the app module is imported. It makes
loguru the only logging backend: stdlib records from uvicorn, openai, httpx and
pydantic_ai are forwarded to it, and timestamps are shown in the service
timezone so they line up with subscription expiry times.
"""

from __future__ import annotations

import logging
import sys
from zoneinfo import ZoneInfo

from loguru import logger

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS Z}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Per-request chatter from the HTTP clients is only useful when debugging.
_LIBRARY_LEVELS: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
    "fastapi": logging.INFO,
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _in_timezone(tz: ZoneInfo):
    def patch(record) -> None:
        # Must stay loguru's datetime subclass for "{time:...}" formatting.
        t = record["time"]
        record["time"] = type(t).fromtimestamp(t.timestamp(), tz)

    return patch


def setup_logging(*, level: str = "INFO", json: bool = False, timezone: str | None = None) -> None:
    """Configure loguru sinks and route stdlib logging into them.

    Args:
        level: Minimum level for the stderr sink.
        json: Emit serialized JSON records instead of coloured text.
        timezone: IANA name used for record timestamps; server local time when None.
    """
    logger.remove()
    if timezone:
        logger.configure(patcher=_in_timezone(ZoneInfo(timezone)))

    if json:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_TEXT_FORMAT, colorize=True)

    intercept = InterceptHandler()
    for name, lib_level in _LIBRARY_LEVELS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [intercept]
        stdlib_logger.setLevel(lib_level)
        stdlib_logger.propagate = False

    logging.root.handlers = [intercept]
    logging.root.setLevel(logging.DEBUG)
