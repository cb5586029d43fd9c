"""Process-wide logging setup for the ``knnvec`` logger tree."""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "knnvec"


def configure_logging(level: str = "WARNING", fmt: str | None = None) -> logging.Handler:
    """Attach a stderr handler to the package logger and return it."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(handler)
    return handler


def reset_logging(handler: logging.Handler) -> None:
    """Detach ``handler`` from the package logger and restore the default level."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.removeHandler(handler)
    handler.close()
    logger.setLevel(logging.NOTSET)
