"""Logging configuration for the prose-vcs command line."""

import sys

from loguru import logger

_FORMAT = "{level.icon} {message}"
_VERBOSE_FORMAT = "{time:HH:mm:ss.SSS} {level.icon} {name}:{function} {message}"


def configure_logging(*, verbose: bool = False) -> None:
    """Send log records to stderr; debug records and their origin only when verbose."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_VERBOSE_FORMAT)
    else:
        logger.add(sys.stderr, level="INFO", format=_FORMAT)
