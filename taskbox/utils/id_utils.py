"""Identifier helpers for TaskBox records."""

import secrets
import time
from typing import Optional

TIMESTAMP_DIGITS = 12
RANDOM_DIGITS = 14
ID_LENGTH = TIMESTAMP_DIGITS + RANDOM_DIGITS


def generate_id(timestamp_ms: Optional[int] = None) -> str:
    """
    Generate a record identifier that sorts by creation time.

    The identifier is a zero-padded hex millisecond timestamp followed by
    random hex digits, so plain string comparison orders ids created in
    different milliseconds chronologically.

    Args:
        timestamp_ms: Creation time in milliseconds since the epoch
                      (defaults to now)

    Returns:
        26-character lowercase hex identifier

    Examples:
        >>> generate_id(0)[:12]
        '000000000000'
        >>> generate_id(1) < generate_id(2)
        True
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{timestamp_ms:0{TIMESTAMP_DIGITS}x}{secrets.token_hex(RANDOM_DIGITS // 2)}"
