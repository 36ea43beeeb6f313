"""Logging setup for savekeep.

Adds a TRACE level below DEBUG for the high-volume rclone log notes.
"""

from __future__ import annotations

import logging
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def setup_logging(verbose: int = 0) -> logging.Logger:
    """Configure the ``savekeep`` logger for command-line use.

    Args:
        verbose: 0 for warnings, 1 for info, 2 for debug, 3+ for trace.

    Returns:
        The package logger.
    """
    level = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}.get(verbose, TRACE)

    logger = logging.getLogger("savekeep")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)

    return logger
