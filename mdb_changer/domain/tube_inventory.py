"""
Tube Inventory - Live model of the coin changer tubes.

One TubeState per known coin type. Every mutation is a synchronous
read-modify-write with no await inside, so within the event loop each
mutation is atomic with respect to the poll loop and request handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, Mapping, Optional

from mdb_changer.core.exceptions import TubeRefreshError
from mdb_changer.core.value_objects import TubeStatus, TubeSummary
from mdb_changer.devices.mdb.constants import (
    MAX_COIN_TYPES,
    TUBE_STATUS_FLAG_BYTES,
    TUBE_STATUS_MIN_LENGTH,
    coin_type_of,
)
from mdb_changer.loggers import logger


@dataclass
class TubeState:
    """
    State of one coin tube.

    Invariant: 0 <= dispensable <= count <= capacity.
    """

    coin_type: int
    value: int
    count: int = 0
    capacity: int = 0
    dispensable: int = 0

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    @property
    def is_full(self) -> bool:
        return self.count == self.capacity

    @property
    def fullness_percent(self) -> int:
        """Fill level rounded half up, 0 for a zero-capacity tube."""
        if self.capacity <= 0:
            return 0
        return (200 * self.count + self.capacity) // (2 * self.capacity)


class TubeInventory:
    """
    Per coin type inventory of the changer tubes.

    Dispensable quantity keeps a security stock aside in every tube to
    hedge against counting drift. Quantities sent by the dispense
    executor are tracked as in-flight until the matching Dispensed poll
    events arrive, so a dispense is only counted once. In-flight coins
    survive a hardware resync: the tube level seen when they were sent
    tells how many of them the hardware count already reflects.
    """

    def __init__(
        self,
        capacity: int,
        security_stock: int = 0,
        coin_map: Optional[Mapping[int, int]] = None,
    ) -> None:
        """
        Initialize the inventory.

        Args:
            capacity: Capacity of every tube.
            security_stock: Coins per tube never offered for dispensing.
            coin_map: Coin type -> value; creates empty tubes when given.
        """
        if capacity < 0:
            raise ValueError(f"Tube capacity cannot be negative: {capacity}")
        if security_stock < 0:
            raise ValueError(f"Security stock cannot be negative: {security_stock}")

        self._capacity = capacity
        self._security_stock = security_stock
        self._coin_map: dict[int, int] = {}
        self._tubes: dict[int, TubeState] = {}
        self._in_flight: dict[int, int] = {}
        # Count of the tube before its first in-flight dispense
        self._sent_from: dict[int, int] = {}

        if coin_map:
            self.load_coin_map(coin_map)

    # =========================================================================
    # Collection access
    # =========================================================================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def security_stock(self) -> int:
        return self._security_stock

    def __len__(self) -> int:
        return len(self._tubes)

    def __contains__(self, coin_type: object) -> bool:
        return coin_type in self._tubes

    def __iter__(self) -> Iterator[TubeState]:
        return iter(sorted(self._tubes.values(), key=lambda t: t.coin_type))

    def get(self, coin_type: int) -> Optional[TubeState]:
        """Get a copy of the tube for a coin type."""
        tube = self._tubes.get(coin_type)
        return replace(tube) if tube else None

    def snapshot(self) -> list[TubeState]:
        """Get copies of all tubes, ordered by coin type."""
        return [replace(tube) for tube in self]

    def in_flight(self, coin_type: int) -> int:
        """Coins sent for dispensing but not yet reported by the poll loop."""
        return self._in_flight.get(coin_type, 0)

    def dispensable_tubes(self) -> list[tuple[int, int, int]]:
        """Get (coin_type, value, dispensable) for every tube."""
        return [(t.coin_type, t.value, t.dispensable) for t in self]

    # =========================================================================
    # Creation
    # =========================================================================

    def load_coin_map(self, coin_map: Mapping[int, int]) -> None:
        """
        Create one empty tube per coin type of the map.

        Existing tubes keep their counts and take the new value.
        """
        self._coin_map = dict(coin_map)
        for coin_type, value in self._coin_map.items():
            tube = self._tubes.get(coin_type)
            if tube is None:
                self._tubes[coin_type] = TubeState(
                    coin_type=coin_type,
                    value=value,
                    capacity=self._capacity,
                )
            else:
                tube.value = value

    def _get_or_create(self, coin_type: int) -> TubeState:
        tube = self._tubes.get(coin_type)
        if tube is None:
            tube = TubeState(
                coin_type=coin_type,
                value=self._coin_map.get(coin_type, 0),
                capacity=self._capacity,
            )
            self._tubes[coin_type] = tube
        return tube

    def _recompute(self, tube: TubeState) -> None:
        tube.count = min(max(tube.count, 0), tube.capacity)
        tube.dispensable = max(0, tube.count - self._security_stock)

    # =========================================================================
    # Mutations
    # =========================================================================

    def resync_from_hardware(self, payload: bytes) -> None:
        """
        Replace counts with the hardware tube status.

        Payload: 2 bytes of tube-full flags, then one approximate count
        byte per raw coin type. Counts outside [0, capacity] are clamped.
        In-flight coins not yet visible in the hardware count are still
        deducted.

        Args:
            payload: Decoded tube status payload.

        Raises:
            TubeRefreshError: If the payload is too short.
        """
        if len(payload) < TUBE_STATUS_MIN_LENGTH:
            raise TubeRefreshError(
                f"Tube status: too few bytes ({len(payload)})",
                raw=payload,
            )

        counts = payload[TUBE_STATUS_FLAG_BYTES:TUBE_STATUS_FLAG_BYTES + MAX_COIN_TYPES]
        for raw_type, approx_count in enumerate(counts):
            coin_type = coin_type_of(raw_type)
            tube = self._get_or_create(coin_type)
            unreflected = self._unreflected(coin_type, approx_count)
            tube.count = min(approx_count, tube.capacity) - unreflected
            self._recompute(tube)

        logger.debug(
            "Tube levels: "
            + ", ".join(f"{t.coin_type}={t.count}" for t in self)
        )

    def _unreflected(self, coin_type: int, hardware_count: int) -> int:
        pending = self._in_flight.get(coin_type, 0)
        if not pending:
            return 0
        departed = max(0, self._sent_from[coin_type] - hardware_count)
        return max(0, pending - departed)

    def apply_accepted(self, coin_type: int) -> Optional[TubeState]:
        """
        Count one coin routed into a tube.

        Returns:
            Copy of the updated tube, or None for an unknown coin type.
        """
        tube = self._tubes.get(coin_type)
        if tube is None:
            return None
        tube.count = min(tube.count + 1, tube.capacity)
        self._recompute(tube)
        return replace(tube)

    def apply_dispensed(self, coin_type: int) -> Optional[TubeState]:
        """
        Count one coin reported as dispensed by the poll loop.

        A coin already deducted by record_dispense() only settles the
        in-flight quantity.

        Returns:
            Copy of the tube after the update, or None for an unknown coin type.
        """
        tube = self._tubes.get(coin_type)
        if tube is None:
            return None
        pending = self._in_flight.get(coin_type, 0)
        if pending > 1:
            self._in_flight[coin_type] = pending - 1
        elif pending == 1:
            self._settle(coin_type)
        else:
            tube.count = max(tube.count - 1, 0)
            self._recompute(tube)
        return replace(tube)

    def record_dispense(self, coin_type: int, quantity: int) -> Optional[TubeState]:
        """
        Deduct coins just sent to the changer.

        Returns:
            Copy of the updated tube, or None for an unknown coin type.
        """
        tube = self._tubes.get(coin_type)
        if tube is None:
            return None
        if not self._in_flight.get(coin_type):
            self._sent_from[coin_type] = tube.count
        tube.count = max(tube.count - quantity, 0)
        self._recompute(tube)
        self._in_flight[coin_type] = self._in_flight.get(coin_type, 0) + quantity
        return replace(tube)

    def _settle(self, coin_type: int) -> None:
        self._in_flight.pop(coin_type, None)
        self._sent_from.pop(coin_type, None)

    def clear_in_flight(self) -> None:
        """Forget coins awaiting their Dispensed events (re-initialization)."""
        self._in_flight.clear()
        self._sent_from.clear()

    def reset_all(self) -> None:
        """Set every tube to zero coins; tubes themselves are kept."""
        for tube in self._tubes.values():
            tube.count = 0
            tube.dispensable = 0
        self.clear_in_flight()
        logger.info("Tube counts reset")

    # =========================================================================
    # Projection
    # =========================================================================

    def summary(self) -> list[TubeSummary]:
        """Get a status summary per tube, ordered by coin type."""
        result = []
        for tube in self:
            if tube.is_empty:
                status = TubeStatus.EMPTY
            elif tube.is_full:
                status = TubeStatus.FULL
            else:
                status = TubeStatus.OK
            result.append(TubeSummary(
                coin_type=tube.coin_type,
                value=tube.value,
                count=tube.count,
                capacity=tube.capacity,
                dispensable=tube.dispensable,
                fullness_percent=tube.fullness_percent,
                status=status,
            ))
        return result
