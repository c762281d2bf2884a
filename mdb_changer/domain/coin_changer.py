"""
Coin Changer - MDB coin changer engine.

Owns the tube inventory and drives the device through the serial
bridge: initialization, the background poll loop that turns hardware
events into inventory updates and notifications, and the dispense
executor.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from mdb_changer.configs import FALLBACK_COIN_MAP
from mdb_changer.core.exceptions import (
    CashSystemError,
    CoinOperationError,
    DeviceFatalError,
    DeviceNotInitializedError,
    InvalidCoinTypeError,
    InvalidQuantityError,
    SetupParseError,
    TubeRefreshError,
)
from mdb_changer.core.interfaces import LineTransport
from mdb_changer.core.value_objects import CoinEvent, CoinEventType, TubeSummary
from mdb_changer.devices.mdb import constants as mdb
from mdb_changer.devices.mdb.classifier import EventClassifier
from mdb_changer.devices.mdb.codec import encode_dispense, extract_payload
from mdb_changer.devices.mdb.coin_map import build_coin_map
from mdb_changer.domain.tube_inventory import TubeInventory
from mdb_changer.event_system import EventPublisher, EventType
from mdb_changer.infrastructure.settings import InventorySettings, MDBSettings
from mdb_changer.loggers import logger


DEVICE_NAME = "coin_changer"
FATAL_MESSAGE = "No response from device. check device and restart"


class CoinChanger:
    """
    MDB coin changer engine.

    The poll loop is the only periodic user of the transport; the
    dispense executor takes a lock so that only one dispense sequence
    runs at a time. Inventory mutations are synchronous and therefore
    atomic with respect to both.
    """

    def __init__(
        self,
        transport: LineTransport,
        publisher: Optional[EventPublisher] = None,
        mdb_settings: Optional[MDBSettings] = None,
        inventory_settings: Optional[InventorySettings] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            transport: Line transport to the MDB bridge.
            publisher: Publisher for coin event notifications.
            mdb_settings: Timing and dialect settings.
            inventory_settings: Tube settings.
        """
        self._transport = transport
        self._publisher = publisher
        self._mdb = mdb_settings or MDBSettings()
        self._inventory_settings = inventory_settings or InventorySettings()

        self._inventory = TubeInventory(
            capacity=self._inventory_settings.tube_capacity,
            security_stock=self._inventory_settings.security_stock,
        )
        self._classifier = EventClassifier({}, self._mdb.event_nibbles)
        self._coin_map: dict[int, int] = {}

        self._initialized = False
        self._accepting = False
        self._failures = 0
        self._fatal_error: Optional[DeviceFatalError] = None
        self._last_event = CoinEvent.none().describe()

        self._stop_event = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None
        self._dispense_lock = asyncio.Lock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def inventory(self) -> TubeInventory:
        return self._inventory

    @property
    def coin_map(self) -> dict[int, int]:
        """Get a copy of the coin type -> value map."""
        return dict(self._coin_map)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def is_accepting(self) -> bool:
        return self._accepting

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def last_event(self) -> str:
        """Description of the last classified event."""
        return self._last_event

    @property
    def fatal_error(self) -> Optional[DeviceFatalError]:
        """The error that terminated the poll loop, if any."""
        return self._fatal_error

    # =========================================================================
    # Initialization
    # =========================================================================

    async def _command(self, line: str, timeout: float) -> str:
        response = await self._transport.request(line, timeout)
        logger.debug(f"{line} -> {response or '<no response>'}")
        return response

    async def initialize(self) -> None:
        """
        Run the device initialization sequence.

        Enable master, reset, read setup (coin map), expansion handshake,
        read tube status, enable coin types, then inhibit acceptance
        until polling starts.

        Raises:
            DeviceConnectionError: If the bridge cannot be opened.
            SetupParseError: If setup fails and the fallback map is disabled.
            TubeRefreshError: If the tube status cannot be read.
        """
        if self.is_polling:
            await self.stop_polling()

        self._initialized = False
        self._fatal_error = None
        self._failures = 0

        logger.info("Initializing coin changer...")
        await self._transport.open()

        await self._command(mdb.CMD_ENABLE_MASTER, self._mdb.handshake_timeout)
        await self._command(mdb.CMD_RESET_COIN_ACCEPTOR, self._mdb.handshake_timeout)
        await asyncio.sleep(self._mdb.reset_delay)

        coin_map = await self._read_coin_map()
        self._coin_map = coin_map
        self._inventory.load_coin_map(coin_map)
        self._inventory.clear_in_flight()
        self._classifier.update_coin_map(coin_map)

        expansion = await self._command(mdb.CMD_EXPANSION_REQUEST, self._mdb.default_timeout)
        if expansion:
            logger.info(f"Expansion ID: {expansion}")
        await self._command(mdb.CMD_EXPANSION_FEATURE_ENABLE, self._mdb.default_timeout)

        await self.refresh_tubes()

        await self._command(mdb.CMD_COIN_TYPE_ENABLE, self._mdb.default_timeout)
        await self.set_coin_acceptance(False)

        self._initialized = True
        logger.info(f"Coin changer initialized with {len(self._inventory)} tubes")

    async def _read_coin_map(self) -> dict[int, int]:
        response = await self._command(mdb.CMD_REQUEST_SETUP_INFO, self._mdb.setup_timeout)
        try:
            return build_coin_map(extract_payload(response))
        except SetupParseError as e:
            if not self._inventory_settings.use_fallback_coin_map:
                raise
            logger.warning(f"{e.message}; using fallback coin map")
            return dict(FALLBACK_COIN_MAP)

    async def refresh_tubes(self) -> None:
        """
        Resync tube counts from the hardware tube status.

        Raises:
            TubeRefreshError: If the response is missing or malformed.
        """
        response = await self._command(mdb.CMD_TUBE_STATUS_REQUEST, self._mdb.default_timeout)
        payload = extract_payload(response)
        if not payload:
            raise TubeRefreshError(
                "No tube status response",
                raw=response,
                device_name=DEVICE_NAME,
            )
        self._inventory.resync_from_hardware(payload)

    async def set_coin_acceptance(self, enabled: bool) -> None:
        """Enable or inhibit coin acceptance."""
        command = mdb.CMD_COIN_TYPE_ENABLE if enabled else mdb.CMD_INHIBIT_COIN_ACCEPTOR
        await self._command(command, self._mdb.default_timeout)
        self._accepting = enabled
        logger.info("Coin acceptance " + ("enabled" if enabled else "inhibited"))

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise DeviceNotInitializedError(
                "Coin changer not initialized",
                device_name=DEVICE_NAME,
            )

    # =========================================================================
    # Poll Loop
    # =========================================================================

    async def start_polling(self) -> None:
        """
        Enable coin acceptance and start the background poll loop.

        Raises:
            DeviceNotInitializedError: If not initialized (or the loop died).
        """
        self._ensure_initialized()
        if self.is_polling:
            return

        await self.set_coin_acceptance(True)

        self._stop_event.clear()
        self._failures = 0
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._poll_task.add_done_callback(self._on_poll_done)

    async def stop_polling(self) -> None:
        """Stop the poll loop and inhibit coin acceptance."""
        self._stop_event.set()

        task, self._poll_task = self._poll_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._initialized:
            await self.set_coin_acceptance(False)

    async def wait_polling(self) -> None:
        """
        Wait for the poll loop to end.

        Raises:
            DeviceFatalError: If the loop ended on its failure threshold.
        """
        if self._poll_task is not None:
            await self._poll_task

    def _on_poll_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and not isinstance(error, DeviceFatalError):
            logger.error(f"Poll loop crashed: {error}")

    async def _wait_stopped(self, delay: float) -> bool:
        """Sleep unless stop is requested; True if it was."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _poll_loop(self) -> None:
        """
        Main polling loop.

        Raises:
            DeviceFatalError: When consecutive failures exceed the threshold.
        """
        logger.info("Poll loop started")
        try:
            while not self._stop_event.is_set():
                try:
                    response = await self._transport.request(mdb.CMD_POLL, self._mdb.poll_timeout)
                    if not response:
                        delay = self._mdb.empty_poll_delay
                    else:
                        event = self._classifier.classify_line(response)
                        if not event.is_none:
                            await self._handle_event(event)
                        delay = self._mdb.poll_interval
                    self._failures = 0
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._failures += 1
                    logger.error(f"Poll error ({self._failures}/{self._mdb.max_poll_failures}): {e}")
                    if self._failures > self._mdb.max_poll_failures:
                        self._fatal_error = DeviceFatalError(
                            FATAL_MESSAGE,
                            failures=self._failures,
                            device_name=DEVICE_NAME,
                        )
                        self._initialized = False
                        self._accepting = False
                        logger.critical(f"{FATAL_MESSAGE} ({self._failures} consecutive failures)")
                        raise self._fatal_error from e
                    delay = self._mdb.error_backoff

                if await self._wait_stopped(delay):
                    break
        finally:
            logger.info("Poll loop stopped")

    async def _handle_event(self, event: CoinEvent) -> None:
        """Apply a classified event to the inventory and publish it."""
        self._last_event = event.describe()
        logger.info(self._last_event)

        tube = None
        if event.type is CoinEventType.ACCEPTED:
            tube = self._inventory.apply_accepted(event.coin_type)
        elif event.type is CoinEventType.DISPENSED:
            tube = self._inventory.apply_dispensed(event.coin_type)

        data: dict[str, Any] = {
            "eventType": event.notification_name,
            "coinType": event.coin_type,
            "value": event.value,
        }
        if tube is not None:
            data["newCount"] = tube.count
            data["dispensable"] = tube.dispensable

        await self._publish(EventType(event.notification_name), **data)

    async def _publish(self, event_type: EventType, **data: Any) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.publish(event_type, **data)
        except Exception as e:
            logger.error(f"Failed to publish {event_type.value} event: {e}")

    # =========================================================================
    # Dispense Executor
    # =========================================================================

    def dispensable_tubes(self) -> list[tuple[int, int, int]]:
        """Get (coin_type, value, dispensable) for every tube."""
        return self._inventory.dispensable_tubes()

    async def dispense(self, coin_type: int, quantity: int) -> list[str]:
        """
        Dispense coins of one type.

        Tube counts are resynced first when possible. More than 15 coins
        are sent as several commands separated by the inter-dispense delay.
        The tube is decremented as soon as each command is sent.

        Args:
            coin_type: 1-based coin type.
            quantity: Number of coins.

        Returns:
            Acknowledgement line per command sent.

        Raises:
            DeviceNotInitializedError: If not initialized.
            InvalidCoinTypeError: If the coin type is outside the wire range.
            InvalidQuantityError: If quantity < 1.
            CoinOperationError: If the tube is unknown or has too few coins.
            CashSystemError: If sending fails; details["dispensed"] holds
                the coins of the batches already sent.
        """
        self._ensure_initialized()

        async with self._dispense_lock:
            try:
                await self.refresh_tubes()
            except TubeRefreshError as e:
                logger.warning(f"Tube refresh before dispense failed, using local counts: {e.message}")

            raw_type = mdb.raw_type_of(coin_type)
            if not 0 <= raw_type <= mdb.MAX_RAW_TYPE:
                raise InvalidCoinTypeError(
                    f"Coin type {coin_type} out of range 1-{mdb.MAX_COIN_TYPES}",
                    coin_type=coin_type,
                    device_name=DEVICE_NAME,
                )

            tube = self._inventory.get(coin_type)
            if tube is None:
                raise CoinOperationError(
                    f"Unknown coin type {coin_type}",
                    coin_type=coin_type,
                    device_name=DEVICE_NAME,
                )

            if quantity < 1:
                raise InvalidQuantityError(
                    f"Invalid quantity: {quantity}",
                    coin_type=coin_type,
                    requested=quantity,
                    device_name=DEVICE_NAME,
                )

            if quantity > tube.dispensable:
                raise CoinOperationError(
                    f"Not enough coins of type {coin_type}: requested {quantity}, "
                    f"dispensable {tube.dispensable} (count {tube.count})",
                    coin_type=coin_type,
                    requested=quantity,
                    available=tube.dispensable,
                    count=tube.count,
                    device_name=DEVICE_NAME,
                )

            acks = []
            remaining = quantity
            try:
                while remaining > 0:
                    batch = min(remaining, mdb.MAX_DISPENSE_QUANTITY)
                    ack = await self._command(encode_dispense(raw_type, batch), self._mdb.dispense_timeout)
                    self._inventory.record_dispense(coin_type, batch)
                    logger.info(f"Dispensed {batch} x coin {coin_type} ({tube.value}), ack: {ack or '<none>'}")
                    acks.append(ack)
                    remaining -= batch
                    if remaining > 0:
                        await asyncio.sleep(self._mdb.inter_dispense_delay)
            except CashSystemError as e:
                # Batches already sent stay dispensed
                e.details["dispensed"] = quantity - remaining
                raise
            return acks

    # =========================================================================
    # Inventory
    # =========================================================================

    def tube_summary(self) -> list[TubeSummary]:
        """Get tube summaries ordered by coin type."""
        return self._inventory.summary()

    def reset_tubes(self) -> None:
        """Zero all tube counts."""
        self._inventory.reset_all()

    def status(self) -> dict[str, Any]:
        """Get the device status projection."""
        return {
            "initialized": self._initialized,
            "polling": self.is_polling,
            "accepting": self._accepting,
            "failures": self._failures,
            "last_event": self._last_event,
            "coin_map": {str(k): v for k, v in sorted(self._coin_map.items())},
            "fatal_error": self._fatal_error.to_dict() if self._fatal_error else None,
        }

    async def shutdown(self) -> None:
        """Stop polling and close the transport."""
        await self.stop_polling()
        await self._transport.close()
        self._initialized = False
