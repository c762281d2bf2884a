"""
Poll event classifier.

Turns the first byte of a poll payload into a typed coin event:
the low nibble is the raw coin type, the high nibble selects the
event kind through a dialect-specific mapping.
"""

import logging
from typing import Mapping

from mdb_changer.core.value_objects import CoinEvent, CoinEventType

from .codec import extract_payload
from .constants import coin_type_of


logger = logging.getLogger(__name__)


class EventClassifier:
    """
    Classifier for poll payloads.

    Unmapped coin types and unknown high nibbles yield a NONE event;
    they are noise from the point of view of the inventory.

    Attributes:
        coin_map: Coin type -> value of the known coin types.
        nibbles: High nibble -> event kind.
    """

    def __init__(
        self,
        coin_map: Mapping[int, int],
        nibbles: Mapping[int, CoinEventType],
    ) -> None:
        self._coin_map = dict(coin_map)
        self._nibbles = dict(nibbles)

    @property
    def coin_map(self) -> dict[int, int]:
        """Get a copy of the coin map."""
        return dict(self._coin_map)

    def update_coin_map(self, coin_map: Mapping[int, int]) -> None:
        """Replace the coin map (after re-initialization)."""
        self._coin_map = dict(coin_map)

    def classify(self, payload: bytes) -> CoinEvent:
        """
        Classify a decoded poll payload.

        Args:
            payload: Poll payload bytes.

        Returns:
            The classified event.
        """
        if not payload:
            return CoinEvent.none()

        first = payload[0]
        coin_type = coin_type_of(first & 0x0F)
        value = self._coin_map.get(coin_type)
        if value is None:
            logger.debug(f"Ignoring event 0x{first:02X}: coin type {coin_type} not mapped")
            return CoinEvent.none()

        event_type = self._nibbles.get((first >> 4) & 0x0F, CoinEventType.NONE)
        if event_type is CoinEventType.NONE:
            logger.debug(f"Ignoring event 0x{first:02X}: unknown status nibble")
            return CoinEvent.none()

        return CoinEvent(type=event_type, coin_type=coin_type, value=value)

    def classify_line(self, line: str) -> CoinEvent:
        """Classify a raw poll response line."""
        return self.classify(extract_payload(line))
