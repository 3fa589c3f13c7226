"""Comparable forms of Bluetooth addresses and UUIDs.

Clients may pass ``C0:AB:2A:6A:1A:89``, ``c0ab2a6a1a89`` or a hyphenated
128-bit UUID in any case; all of them are compared on the same key. A colon
is a reserved URL character, so clients usually send addresses without one.
"""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[-:]")


def normalize(value: str) -> str:
    """Return ``value`` without ``-`` and ``:`` separators, lowercased.

    Examples:
        >>> normalize("C0:AB:2A:6A:1A:89")
        'c0ab2a6a1a89'
        >>> normalize("550E8400-E29B-41D4-A716-446655440000")
        '550e8400e29b41d4a716446655440000'
    """
    return _SEPARATORS.sub("", value).lower()


def equal(a: str, b: str) -> bool:
    """Compare two addresses or UUIDs ignoring case and separators."""
    return normalize(a) == normalize(b)
