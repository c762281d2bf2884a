"""
API Facade - Unified interface for the coin changer service.

Builds the engine, the event system and the services, and exposes the
administrative operations as coroutines returning dictionaries.
"""

import asyncio
from typing import Any, Optional

from redis.asyncio import Redis

from mdb_changer.application.amount_service import AmountService
from mdb_changer.application.coin_service import CoinService
from mdb_changer.core.interfaces import LineTransport
from mdb_changer.devices.mdb.transport import SerialLineTransport
from mdb_changer.domain.amount_request import AmountRequestStateMachine
from mdb_changer.domain.change_planner import ChangeDispenser
from mdb_changer.domain.coin_changer import CoinChanger
from mdb_changer.event_system import EventConsumer, EventPublisher, EventType, WILDCARD
from mdb_changer.infrastructure.redis_broadcaster import RedisEventBroadcaster
from mdb_changer.infrastructure.settings import Settings, get_settings
from mdb_changer.loggers import logger
from mdb_changer.send_to_ws import WebSocketForwarder


class CoinChangerFacade:
    """
    Facade for the coin changer API.

    Every public coroutine returns a dictionary with at least
    "success" and "message" keys.
    """

    DEVICE_NAME = "coin_changer"

    def __init__(
        self,
        transport: Optional[LineTransport] = None,
        redis: Optional[Redis] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the coin changer facade.

        Args:
            transport: Line transport; a serial transport by default.
            redis: Redis client for event broadcasting (optional).
            settings: Application settings; the singleton by default.
        """
        self._settings = settings or get_settings()
        self._redis = redis

        # Event system
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._event_publisher = EventPublisher(self._event_queue)
        self._event_consumer = EventConsumer(self._event_queue)

        # Domain
        self._changer = CoinChanger(
            transport or SerialLineTransport(self._settings.serial),
            self._event_publisher,
            self._settings.mdb,
            self._settings.inventory,
        )
        self._change = ChangeDispenser(self._changer, self._settings.mdb.inter_dispense_delay)
        self._amount_request = AmountRequestStateMachine(self._change, self._event_publisher)

        # Services
        self._coin_service = CoinService(self._changer)
        self._amount_service = AmountService(self._amount_request, self._change)

        self._register_event_handlers()

    @property
    def changer(self) -> CoinChanger:
        return self._changer

    @property
    def amount_request(self) -> AmountRequestStateMachine:
        return self._amount_request

    @property
    def event_consumer(self) -> EventConsumer:
        return self._event_consumer

    def _register_event_handlers(self) -> None:
        """Register observers of coin and amount events."""
        for event_type in (EventType.COIN, EventType.CASHBOX, EventType.DISPENSE):
            self._event_consumer.register_handler(
                event_type,
                self._amount_request.handle_event,
            )

        if self._redis is not None:
            broadcaster = RedisEventBroadcaster(
                self._redis,
                self._settings.services.event_channel,
            )
            self._event_consumer.register_handler(WILDCARD, broadcaster.handle_event)

        if self._settings.services.forward_to_websocket:
            forwarder = WebSocketForwarder(self._settings.services.websocket_url)
            self._event_consumer.register_handler(WILDCARD, forwarder.handle_event)

    # =========================================================================
    # Device Operations
    # =========================================================================

    async def init_device(self) -> dict[str, Any]:
        """
        Initialize the coin changer and start event processing.

        Returns:
            Dictionary indicating initialization success.
        """
        result = await self._coin_service.init_device()
        if result["success"]:
            await self._event_consumer.start_consuming()
        return result

    async def start_polling(self) -> dict[str, Any]:
        """Start polling and coin acceptance."""
        return await self._coin_service.start_polling()

    async def stop_polling(self) -> dict[str, Any]:
        """Stop polling and inhibit coin acceptance."""
        return await self._coin_service.stop_polling()

    async def dispense(self, coin_type: int, quantity: int) -> dict[str, Any]:
        """Dispense coins of one type."""
        return await self._coin_service.dispense(coin_type, quantity)

    async def tube_summary(self) -> dict[str, Any]:
        """Get tube summaries."""
        return await self._coin_service.tube_summary()

    async def reset_tubes(self) -> dict[str, Any]:
        """Zero all tube counts."""
        return await self._coin_service.reset_tubes()

    async def device_status(self) -> dict[str, Any]:
        """Get device status."""
        return await self._coin_service.device_status()

    # =========================================================================
    # Amount Operations
    # =========================================================================

    async def start_amount_request(self, amount: int) -> dict[str, Any]:
        """Start collecting an amount."""
        return await self._amount_service.start_amount_request(amount)

    async def cancel_amount_request(self) -> dict[str, Any]:
        """Cancel the amount request."""
        return await self._amount_service.cancel_amount_request()

    async def amount_state(self) -> dict[str, Any]:
        """Get the amount request state."""
        return await self._amount_service.amount_state()

    async def refund(self, amount: int) -> dict[str, Any]:
        """Pay out an exact amount."""
        return await self._amount_service.refund(amount)

    async def plan_change(self, amount: int) -> dict[str, Any]:
        """Plan a payout without dispensing."""
        return await self._amount_service.plan_change(amount)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def shutdown(self) -> None:
        """Shut down the device and stop event processing."""
        await self._coin_service.shutdown()
        await self._event_consumer.stop_consuming()
        logger.info("Coin changer service shut down")
