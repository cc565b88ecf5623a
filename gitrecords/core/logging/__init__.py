"""Logging setup for gitrecords.

Modules log through ``logging.getLogger(__name__)``; applications that want
console output call ``configure_logging()`` once.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "gitrecords"


def configure_logging(level: Optional[str] = None, console: Optional[Console] = None) -> logging.Logger:
    """
    Attach a RichHandler to the gitrecords logger

    Calling it again replaces the previous handler instead of stacking another.

    Args:
        level: Log level name (default: config.log_level)
        console: rich Console to write to (default: stderr)

    Returns:
        the gitrecords logger
    """
    if level is None:
        from gitrecords.core.config import get_config

        level = get_config().log_level

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_gitrecords_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    handler._gitrecords_handler = True
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
