"""Conversion between textual web values and BLE characteristic payloads.

Request values (web to BLE) take one of three forms:

- hex characters, e.g. ``"0100"``; the byte count follows the string length
- a tilde-prefixed ASCII string, e.g. ``"~hello"`` for the five bytes ``hello``
- a dotted little-endian integer ``.<len>.<int>`` with ``len`` one of 1, 2, 4:
  ``".1.1"`` is ``01``, ``".1.-1"`` and ``".1.255"`` are both ``ff``,
  ``".2.1"`` is ``01 00``, ``".4.1"`` is ``01 00 00 00``

Response values (BLE to web) are objects ``{len, hex[, num][, str]}``:

- ``hex`` is the lowercase hex of the payload and ``len`` its byte count
- ``num`` is present for 1, 2 and 4 byte payloads, little-endian; one byte is
  unsigned, two and four bytes are signed
- ``str`` is present when the payload text is a tilde-prefixed printable
  ASCII string (see ``STR_REQUIRES_TILDE``)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

INTEGER_WIDTHS = (1, 2, 4)

# A numeric response of exactly zero is dropped from the response object:
# ``{len: 2, hex: "0000"}`` carries no ``num`` field. Clients fall back to
# ``hex`` for the value. Kept as-is pending a decision on the wire format.
ZERO_NUMBER_OMITTED = True

# The ``str`` field is only filled when the payload text itself starts with
# ``~``, mirroring the request form. Ordinary printable ASCII such as
# ``"ABC"`` therefore yields no ``str`` field.
STR_REQUIRES_TILDE = True

_ASCII_FORM = re.compile(r"~[\x20-\x7F]+")
_INTEGER_FORM = re.compile(r"\.([124])\.(-?)([0-9]+)")
_HEX_FORM = re.compile(r"[0-9a-fA-F]+")
_PRINTABLE = re.compile(r"[\x20-\x7F]+")


def integer_to_bytes(length: int, value: int) -> bytes:
    """Encode ``value`` as ``length`` little-endian bytes.

    Positive values are written unsigned, zero and negative values as two's
    complement. Values outside the range of the width are truncated to it.
    """
    if length not in INTEGER_WIDTHS:
        raise ValueError(f"integer width must be one of {INTEGER_WIDTHS}, got {length}")
    mask = (1 << (8 * length)) - 1
    return (value & mask).to_bytes(length, "little")


def bytes_to_integer(data: bytes) -> Optional[int]:
    """Return the little-endian integer held in a 1, 2 or 4 byte payload.

    A single byte is read unsigned; two and four bytes are read signed.
    Other lengths have no numeric reading and yield ``None``.
    """
    length = len(data)
    if length == 1:
        return data[0]
    if length in (2, 4):
        return int.from_bytes(data, "little", signed=True)
    return None


def encode(text: Optional[str]) -> Optional[bytes]:
    """Convert a request value to the bytes written to a characteristic.

    Returns:
        The payload, or ``None`` when ``text`` is empty or matches none of
        the three request forms.
    """
    if not text:
        return None

    if text[0] == "~":
        if _ASCII_FORM.fullmatch(text):
            return text[1:].encode("ascii")
        logger.debug("encode: invalid string: %r", text)
        return None

    if text[0] == ".":
        match = _INTEGER_FORM.fullmatch(text)
        if match:
            length = int(match.group(1))
            # 2**(8*length) divides 10**(8*length), so the trailing digits
            # carry the whole value modulo the width
            value = int(match.group(3)[-8 * length :])
            return integer_to_bytes(length, -value if match.group(2) else value)
        logger.debug("encode: invalid integer: %r", text)
        return None

    if len(text) % 2 == 0 and _HEX_FORM.fullmatch(text):
        return bytes.fromhex(text)
    logger.debug("encode: invalid hex string: %r", text)
    return None


def decode(data: bytes) -> Dict[str, Any]:
    """Convert a characteristic payload to the response value object."""
    data = bytes(data)
    result: Dict[str, Any] = {"len": len(data), "hex": data.hex()}

    number = bytes_to_integer(data)
    if number is not None and not (ZERO_NUMBER_OMITTED and number == 0):
        result["num"] = number

    text = data.decode("utf-8", errors="replace")
    pattern = _ASCII_FORM if STR_REQUIRES_TILDE else _PRINTABLE
    if pattern.fullmatch(text):
        result["str"] = text
    return result
