"""
Parsers for the primitive values typed on the command line.

These are pure functions: memory sizes, boot device letters, compound
"mode,key=value" descriptors, log levels and image references.
"""

import logging
import math
import os
import re
from fractions import Fraction

from . import config as app_config

logger = logging.getLogger(__name__)

_MEMORY_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)([KMGT]?)$", re.IGNORECASE)
_LEADING_INTEGER_PATTERN = re.compile(r"^\s*([+-]?\d+)")
_URL_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


class InvalidSizeFormat(ValueError):
    """Raised when a memory size is not a number with an optional K/M/G/T unit."""

    def __init__(self, value):
        super().__init__(f"Invalid memory size format: {value}")
        self.value = value


def parse_memory_size(size_str):
    """
    Converts a size such as "512M", "1G" or "64" into a byte count.

    A bare number means megabytes. Fractions are allowed and the result is
    floored to a whole byte. The arithmetic is exact, so arbitrarily large
    sizes neither overflow nor lose precision.

    Args:
        size_str: The size as typed, or None.

    Returns:
        The size in bytes, or None when size_str is empty or None.

    Raises:
        InvalidSizeFormat: If size_str does not match the size pattern.
    """
    if not size_str:
        return None

    match = _MEMORY_SIZE_PATTERN.match(size_str)
    if not match:
        raise InvalidSizeFormat(size_str)

    number, unit = match.groups()
    multiplier = app_config.MEMORY_UNIT_MULTIPLIERS[unit.upper()]
    return math.floor(Fraction(number) * multiplier)


def parse_boot_order(boot_str):
    """Maps a boot order string to the code of its first device; anything unknown is the hard disk."""
    first_char = boot_str[:1] if boot_str else ""
    return app_config.BOOT_ORDER_CODES.get(first_char, app_config.BOOT_HARD_DISK)


def split_compound(value):
    """Splits a compound flag value into its mode token and the remaining tokens."""
    mode, _, rest = value.partition(",")
    return mode, rest


def parse_network_descriptor(value):
    """
    Parses a --netdev value like "user,type=virtio,relay_url=ws://relay".

    Only the "user" mode yields a descriptor. Other modes are dropped
    silently so that modes added to the engine later do not break older
    launchers.

    Returns:
        A dict of the key=value options (without the mode), or None.
    """
    if not value:
        return None

    mode, rest = split_compound(value)
    if mode != app_config.NETWORK_MODE:
        logger.debug("Ignoring --netdev with unrecognized mode %r", mode)
        return None

    descriptor = {}
    for token in rest.split(",") if rest else []:
        key, sep, option = token.partition("=")
        if not sep or not key:
            logger.warning("Ignoring malformed --netdev option %r (expected key=value).", token)
            continue
        descriptor[key] = option
    return descriptor


def parse_virtfs_descriptor(value):
    """
    Parses a --virtfs value like "proxy,ws://host/fs".

    Everything after the first comma is the proxy target. Modes other than
    "proxy" are dropped silently, as for --netdev.
    """
    if not value:
        return None

    mode, target = split_compound(value)
    if mode != app_config.VIRTFS_MODE:
        logger.debug("Ignoring --virtfs with unrecognized mode %r", mode)
        return None
    if not target:
        logger.warning("Ignoring --virtfs %r: no proxy target given.", value)
        return None
    return {"proxy_url": target}


def parse_log_level(level_str):
    """Returns the leading integer of level_str, or None if it does not start with one."""
    if level_str is None:
        return None
    match = _LEADING_INTEGER_PATTERN.match(level_str)
    if not match:
        logger.debug("Ignoring non-numeric log level %r", level_str)
        return None
    return int(match.group(1))


def is_url(location):
    return bool(_URL_PATTERN.match(location))


def resolve_image_location(location, cwd=None):
    """
    Resolves a user-supplied image location.

    URLs are returned untouched. Local paths are made absolute against cwd
    (the current working directory by default). The file itself is never
    checked; the engine reports load failures on its own.
    """
    if is_url(location):
        return location
    if cwd is None:
        return os.path.abspath(location)
    return os.path.abspath(os.path.join(cwd, location))
