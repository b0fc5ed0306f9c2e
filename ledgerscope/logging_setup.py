"""Logging configuration for ledgerscope.

Library modules only call ``get_logger(__name__)``. Entry points (the CLI)
call ``configure_logging`` once to attach a rich handler to the package
logger.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "ledgerscope"
LOG_LEVEL_ENV = "LEDGERSCOPE_LOG_LEVEL"

_configured = False


def parse_level(level: int | str | None) -> int:
    """Resolve a level name or number, falling back to the environment then WARNING."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level and env_level != level:
        return parse_level(env_level)
    return logging.WARNING


def configure_logging(level: int | str | None = None, console: Console | None = None) -> None:
    """Attach a RichHandler to the package logger, once per process.

    Args:
        level: Level name or number. None means LEDGERSCOPE_LOG_LEVEL or WARNING.
        console: Console to log to. Defaults to stderr.
    """
    global _configured
    if _configured:
        return

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(parse_level(level))
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, silent until configure_logging runs."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
