"""
MDB Serial Bridge Constants.

Command vocabulary and framing of the line-oriented ASCII-hex bridge
in front of an MDB coin changer (address 0x08).
"""

from typing import Final


# Framing
FRAME_MARKER: Final[str] = "p,"  # Prefix of every data response line
CONTROL_WORDS: Final[frozenset[str]] = frozenset({"ACK", "NACK"})
HEX_SEPARATORS: Final[str] = ", \t"

# Bridge commands
CMD_ENABLE_MASTER: Final[str] = "M,1"
CMD_RESET_COIN_ACCEPTOR: Final[str] = "R,08"
CMD_REQUEST_SETUP_INFO: Final[str] = "R,09"
CMD_TUBE_STATUS_REQUEST: Final[str] = "R,0A"
CMD_POLL: Final[str] = "R,0B"
CMD_COIN_TYPE_ENABLE: Final[str] = "R,0C,001F0000"
CMD_INHIBIT_COIN_ACCEPTOR: Final[str] = "R,0C,00000000"
CMD_DISPENSE: Final[str] = "R,0D"
CMD_EXPANSION_REQUEST: Final[str] = "R,0F,00"
CMD_EXPANSION_FEATURE_ENABLE: Final[str] = "R,0F,0100000000"

# Wire limits
MAX_RAW_TYPE: Final[int] = 15
MAX_COIN_TYPES: Final[int] = 16
MAX_DISPENSE_QUANTITY: Final[int] = 15  # One nibble per dispense command

# Setup response layout (Z1..Z23)
SETUP_MIN_LENGTH: Final[int] = 8
SETUP_SCALING_INDEX: Final[int] = 3
SETUP_DECIMALS_INDEX: Final[int] = 4
SETUP_CREDIT_OFFSET: Final[int] = 7
UNUSED_CREDIT_VALUES: Final[frozenset[int]] = frozenset({0x00, 0xFF})

# Tube status response layout
TUBE_STATUS_MIN_LENGTH: Final[int] = 3
TUBE_STATUS_FLAG_BYTES: Final[int] = 2


def raw_type_of(coin_type: int) -> int:
    """Get the 0-based wire nibble for a 1-based coin type."""
    return coin_type - 1


def coin_type_of(raw_type: int) -> int:
    """Get the 1-based coin type for a 0-based wire nibble."""
    return raw_type + 1
