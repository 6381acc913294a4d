"""Logging setup.

Modules log through ``logging.getLogger(__name__)``; this installs a Rich
handler on the package logger so CLI runs get readable output.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "ironlibrary.loanservice"


def configure_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Calling it again only changes the level; handlers are not duplicated.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...)
        console: Console to write to (stderr by default)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)

    return logger
