from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "storyscan"


def configure_logging(level: str | int = "INFO", console: Console | None = None) -> logging.Logger:
    """Attach a rich handler to the ``storyscan`` logger tree."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(
        RichHandler(console=console, show_path=False, rich_tracebacks=True, markup=False)
    )
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
