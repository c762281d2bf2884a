"""
MDB Bridge Codec.

Encodes dispense commands and decodes ASCII-hex response payloads.
All byte-level parsing of bridge responses happens here so the layers
above only deal with byte sequences and typed events.

Response line structure:
    p,<hex payload>     data frame (separators ',' and ' ' allowed)
    p,ACK / p,NACK      handshake control words, not data
"""

import logging
import string

from .constants import (
    CMD_DISPENSE,
    CONTROL_WORDS,
    FRAME_MARKER,
    HEX_SEPARATORS,
    MAX_DISPENSE_QUANTITY,
    MAX_RAW_TYPE,
)


logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(string.hexdigits)


def dispense_byte(raw_type: int, quantity: int) -> int:
    """
    Pack a dispense request into one byte.

    Quantity goes into the high nibble, raw coin type into the low nibble.

    Args:
        raw_type: 0-based coin type (0-15).
        quantity: Number of coins (1-15).

    Returns:
        The packed byte.

    Raises:
        ValueError: If either argument is out of range.
    """
    if not 0 <= raw_type <= MAX_RAW_TYPE:
        raise ValueError(f"raw type must be 0-{MAX_RAW_TYPE}, got {raw_type}")
    if not 1 <= quantity <= MAX_DISPENSE_QUANTITY:
        raise ValueError(f"quantity must be 1-{MAX_DISPENSE_QUANTITY}, got {quantity}")
    return ((quantity & 0x0F) << 4) | (raw_type & 0x0F)


def unpack_dispense_byte(value: int) -> tuple[int, int]:
    """Split a dispense byte into (raw_type, quantity)."""
    return value & 0x0F, (value >> 4) & 0x0F


def encode_dispense(raw_type: int, quantity: int) -> str:
    """
    Build the dispense command line.

    Args:
        raw_type: 0-based coin type (0-15).
        quantity: Number of coins (1-15).

    Returns:
        Command string, e.g. "R,0D,21" for two coins of raw type 1.
    """
    return f"{CMD_DISPENSE},{dispense_byte(raw_type, quantity):02X}"


def decode_hex_payload(payload: str) -> bytes:
    """
    Decode an ASCII-hex payload into bytes.

    Separators and whitespace are removed and an odd digit count is
    left-padded with '0'. Parsing stops at the first group that is not
    valid hex; this never raises, callers treat a short or empty result
    as an unusable response.

    Args:
        payload: Hex text, e.g. "51" or "00,03 19".

    Returns:
        Decoded bytes (possibly empty).
    """
    if not payload:
        return b""

    digits = "".join(ch for ch in payload if ch not in HEX_SEPARATORS and not ch.isspace())
    if len(digits) % 2:
        digits = "0" + digits

    result = bytearray()
    for i in range(0, len(digits), 2):
        group = digits[i:i + 2]
        if not _HEX_DIGITS.issuperset(group):
            break
        result.append(int(group, 16))
    return bytes(result)


def is_payload_frame(line: str) -> bool:
    """
    Check whether a response line carries a decodable payload.

    Args:
        line: Response line from the bridge.

    Returns:
        True if the line starts with the frame marker and is not ACK/NACK.
    """
    if not line or not line.startswith(FRAME_MARKER):
        return False
    word = line[len(FRAME_MARKER):].strip().upper()
    return word not in CONTROL_WORDS


def extract_payload(line: str) -> bytes:
    """
    Get the payload bytes of a data frame.

    Returns:
        Decoded payload, or empty bytes if the line is not a data frame.
    """
    if not is_payload_frame(line):
        return b""
    payload = decode_hex_payload(line[len(FRAME_MARKER):].strip())
    if payload:
        logger.debug(f"Payload: {payload.hex(' ').upper()}")
    return payload
