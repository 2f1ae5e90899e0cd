"""Disk space arithmetic and free-space output parsing.

The guard and the monitor both talk to nodes through a command channel and
get free space back as text. These helpers turn that text into bytes and
bytes into the whole gigabytes the threshold is expressed in.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal

BYTES_PER_GB = 1024**3

_TOKEN_SEPARATORS = re.compile(r"[\s:]+")


class FreeSpaceParseError(ValueError):
    """Raised when a free space response holds no usable number."""

    pass


def bytes_to_gb(size_bytes: float) -> float:
    """Convert a byte count to gigabytes (1024^3 bytes)."""
    return size_bytes / BYTES_PER_GB


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Args:
        value: Value to round.

    Returns:
        Rounded integer, e.g. 1.49 -> 1, 1.5 -> 2, -1.5 -> -2.
    """
    # Decimal's ROUND_HALF_UP rounds halves away from zero
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_free_space_output(output: str) -> int:
    """Extract the free byte count from a node's free space response.

    The response is split on whitespace and colons and the last numeric
    token wins, so both "Result: 1234" and a bare "1234" parse.

    Args:
        output: Raw text printed by the free space command.

    Returns:
        Free space in bytes.

    Raises:
        FreeSpaceParseError: If no finite, non-negative number is present.
    """
    if output is None:
        raise FreeSpaceParseError("Empty free space response")

    for token in reversed(_TOKEN_SEPARATORS.split(output.strip())):
        try:
            value = float(token)
        except ValueError:
            continue
        if not math.isfinite(value) or value < 0:
            continue
        return int(value)

    raise FreeSpaceParseError(f"No numeric value in free space response: {output!r}")
