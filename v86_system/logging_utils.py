#!/usr/bin/env python3
"""
Shared logging setup for v86-system.

Provides timestamped debug logging to file for diagnostic purposes, and
"Warning: ..." style messages on stderr otherwise.
"""

import logging
import sys

PACKAGE_LOGGER = "v86_system"
DEBUG_FORMAT = "[%(created).6f] %(name)s: %(message)s"


class ConsoleFormatter(logging.Formatter):
    """Formats records as 'Warning: message', matching the launcher's printed errors."""

    def format(self, record):
        return f"{record.levelname.capitalize()}: {record.getMessage()}"


def setup_logging(debug_file=None):
    """
    Configure the package logger.

    Args:
        debug_file: Path of a file that receives every DEBUG record with a
                    timestamp, or None to only report warnings on stderr.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if debug_file:
        handler = logging.FileHandler(debug_file, mode="w", encoding="utf-8")
        handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
        logger.setLevel(logging.DEBUG)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter())
        logger.setLevel(logging.WARNING)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
