"""
Coin map builder.

Derives the coin type -> value table from the coin changer SETUP
response (Z1..Z23 in MDB terms).

Setup payload layout:
    Z1      feature level
    Z2-Z3   country / currency code
    Z4      coin scaling factor
    Z5      decimal places
    Z6-Z7   coin type routing (which types can go to the tubes)
    Z8-Z23  coin type credit, one byte per raw type
"""

import logging
from dataclasses import dataclass, field

from mdb_changer.core.exceptions import SetupParseError

from .constants import (
    MAX_COIN_TYPES,
    SETUP_CREDIT_OFFSET,
    SETUP_DECIMALS_INDEX,
    SETUP_MIN_LENGTH,
    SETUP_SCALING_INDEX,
    UNUSED_CREDIT_VALUES,
    coin_type_of,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetupInfo:
    """
    Parsed coin changer setup response.

    Attributes:
        feature_level: MDB feature level.
        country_code: Currency code word.
        scaling: Coin scaling factor.
        decimals: Decimal places (informational).
        routing: Bitmask of coin types routable to tubes.
        coin_values: Coin type -> value in the smallest currency unit.
    """

    feature_level: int
    country_code: int
    scaling: int
    decimals: int
    routing: int
    coin_values: dict[int, int] = field(default_factory=dict)


def parse_setup_info(payload: bytes) -> SetupInfo:
    """
    Parse a setup response payload.

    Args:
        payload: Decoded setup payload bytes.

    Returns:
        Parsed setup information with a non-empty coin map.

    Raises:
        SetupParseError: If the payload is too short or maps no coins.
    """
    if len(payload) < SETUP_MIN_LENGTH:
        raise SetupParseError(
            f"Setup response too short: expected at least {SETUP_MIN_LENGTH} bytes, "
            f"got {len(payload)}",
            raw=payload,
        )

    scaling = payload[SETUP_SCALING_INDEX]
    decimals = payload[SETUP_DECIMALS_INDEX]

    coin_values: dict[int, int] = {}
    type_count = min(MAX_COIN_TYPES, len(payload) - SETUP_CREDIT_OFFSET)
    for raw_type in range(type_count):
        credit_units = payload[SETUP_CREDIT_OFFSET + raw_type]
        if credit_units in UNUSED_CREDIT_VALUES:
            continue
        coin_values[coin_type_of(raw_type)] = credit_units * scaling

    if not coin_values:
        raise SetupParseError("Setup parse resulted in an empty coin map", raw=payload)

    info = SetupInfo(
        feature_level=payload[0],
        country_code=(payload[1] << 8) | payload[2],
        scaling=scaling,
        decimals=decimals,
        routing=(payload[5] << 8) | payload[6],
        coin_values=coin_values,
    )
    logger.info(
        f"Coin map (scaling={scaling}, decimals={decimals}): "
        + ", ".join(f"{coin_type}={value}" for coin_type, value in coin_values.items())
    )
    return info


def build_coin_map(payload: bytes) -> dict[int, int]:
    """
    Build the coin type -> value map from a setup payload.

    Raises:
        SetupParseError: If the payload is unusable.
    """
    return parse_setup_info(payload).coin_values
