"""
MDB Coin Changer Bridge Package.

Wire-level support for an MDB coin changer behind a line-oriented
ASCII-hex serial bridge: command vocabulary, payload codec, setup
parsing, poll event classification and the serial transport.

Example:
    from mdb_changer.devices.mdb import EventClassifier, extract_payload

    classifier = EventClassifier({1: 5, 2: 10}, nibbles)
    event = classifier.classify(extract_payload("p,51"))
"""

from .constants import (
    CMD_COIN_TYPE_ENABLE,
    CMD_DISPENSE,
    CMD_ENABLE_MASTER,
    CMD_EXPANSION_FEATURE_ENABLE,
    CMD_EXPANSION_REQUEST,
    CMD_INHIBIT_COIN_ACCEPTOR,
    CMD_POLL,
    CMD_REQUEST_SETUP_INFO,
    CMD_RESET_COIN_ACCEPTOR,
    CMD_TUBE_STATUS_REQUEST,
    FRAME_MARKER,
    MAX_DISPENSE_QUANTITY,
    MAX_RAW_TYPE,
)
from .codec import (
    decode_hex_payload,
    dispense_byte,
    encode_dispense,
    extract_payload,
    is_payload_frame,
    unpack_dispense_byte,
)
from .coin_map import (
    SetupInfo,
    build_coin_map,
    parse_setup_info,
)
from .classifier import EventClassifier
from .transport import SerialLineTransport


__all__ = [
    # Commands
    'CMD_COIN_TYPE_ENABLE',
    'CMD_DISPENSE',
    'CMD_ENABLE_MASTER',
    'CMD_EXPANSION_FEATURE_ENABLE',
    'CMD_EXPANSION_REQUEST',
    'CMD_INHIBIT_COIN_ACCEPTOR',
    'CMD_POLL',
    'CMD_REQUEST_SETUP_INFO',
    'CMD_RESET_COIN_ACCEPTOR',
    'CMD_TUBE_STATUS_REQUEST',
    'FRAME_MARKER',
    'MAX_DISPENSE_QUANTITY',
    'MAX_RAW_TYPE',

    # Codec
    'decode_hex_payload',
    'dispense_byte',
    'encode_dispense',
    'extract_payload',
    'is_payload_frame',
    'unpack_dispense_byte',

    # Setup
    'SetupInfo',
    'build_coin_map',
    'parse_setup_info',

    # Events and transport
    'EventClassifier',
    'SerialLineTransport',
]
