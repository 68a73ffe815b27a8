from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# Third-party loggers that are chatty at DEBUG and rarely useful for a crawl.
_QUIET = ("aiohttp.access", "aiohttp.client", "asyncio")


def setup_logging(level: str | int | None = None) -> int:
    """
    Configure application logging with a consistent formatter.
    Level comes from the argument, else SHOPCRAWL_LOG_LEVEL, else INFO.
    """
    if level is None:
        level = os.getenv("SHOPCRAWL_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    for name in _QUIET:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
