"""Logging setup for the procrate command line."""

import logging
from pathlib import Path

from textual.logging import TextualHandler


def setup_logging(level: int = logging.WARNING, log_file: Path | None = None) -> logging.Logger:
    """
    Configure and return the ``procrate`` package logger.

    Args:
        level: Logging level for the package.
        log_file: Write to this file. Without one, records go to the running
            Textual app's devtools console and never to the terminal the UI
            draws on.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger("procrate")
    logger.setLevel(level)

    # Remove handlers from a previous call to avoid duplicates
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    else:
        # Records from outside the app (the monitor thread) are dropped
        handler = TextualHandler(stderr=False, stdout=False)
        handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(name)s - %(message)s"))

    handler.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
