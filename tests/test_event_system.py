"""
Unit tests for the event system and event observers.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import websockets
from redis.exceptions import ConnectionError as RedisConnectionError

from fakes import drain
from mdb_changer import send_to_ws as ws_module
from mdb_changer.event_system import EventConsumer, EventPublisher, EventType, WILDCARD
from mdb_changer.infrastructure.redis_broadcaster import RedisEventBroadcaster
from mdb_changer.send_to_ws import WebSocketForwarder, send_to_ws


class TestEventPublisher:
    """Tests for EventPublisher."""

    @pytest.mark.asyncio
    async def test_publish(self, event_queue, publisher):
        """Test events are queued with their wire type name."""
        await publisher.publish(EventType.COIN, coinType=2, value=10)

        assert drain(event_queue) == [{"type": "coin", "coinType": 2, "value": 10}]

    @pytest.mark.asyncio
    async def test_publish_string_type(self, event_queue, publisher):
        """Test plain string event types."""
        await publisher.publish("custom", ok=True)

        assert drain(event_queue) == [{"type": "custom", "ok": True}]


class TestEventConsumer:
    """Tests for EventConsumer dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_by_type(self, event_queue):
        """Test handlers only receive their event type."""
        consumer = EventConsumer(event_queue)
        coin_handler = AsyncMock()
        dispense_handler = AsyncMock()
        consumer.register_handler(EventType.COIN, coin_handler)
        consumer.register_handler(EventType.DISPENSE, dispense_handler)

        await consumer._process_event({"type": "coin", "value": 10})

        coin_handler.assert_awaited_once_with({"type": "coin", "value": 10})
        dispense_handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wildcard(self, event_queue):
        """Test wildcard handlers receive every event."""
        consumer = EventConsumer(event_queue)
        handler = AsyncMock()
        consumer.register_handler(WILDCARD, handler)

        await consumer._process_event({"type": "coin"})
        await consumer._process_event({"type": "amount_state"})

        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_handler_isolated(self, event_queue):
        """Test one failing observer does not affect the others."""
        consumer = EventConsumer(event_queue)
        failing = AsyncMock(side_effect=RuntimeError("client gone"))
        healthy = AsyncMock()
        sync_failing = MagicMock(side_effect=RuntimeError("boom"))
        sync_healthy = MagicMock()
        for handler in (failing, healthy, sync_failing, sync_healthy):
            consumer.register_handler(EventType.COIN, handler)

        await consumer._process_event({"type": "coin"})

        healthy.assert_awaited_once()
        sync_healthy.assert_called_once()

    @pytest.mark.asyncio
    async def test_unregister(self, event_queue):
        """Test removed handlers are no longer called."""
        consumer = EventConsumer(event_queue)
        handler = AsyncMock()
        consumer.register_handler(EventType.COIN, handler)
        consumer.unregister_handler(EventType.COIN, handler)
        consumer.unregister_handler(EventType.COIN, handler)

        await consumer._process_event({"type": "coin"})

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_consume_loop(self, event_queue, publisher):
        """Test the consume task delivers published events."""
        consumer = EventConsumer(event_queue)
        received = asyncio.Event()

        async def handler(event):
            received.set()

        consumer.register_handler(EventType.AMOUNT_STATE, handler)
        await consumer.start_consuming()
        await publisher.publish(EventType.AMOUNT_STATE, status="active")

        await asyncio.wait_for(received.wait(), timeout=1.0)
        await consumer.stop_consuming()

        assert consumer.is_consuming is False


class TestRedisEventBroadcaster:
    """Tests for broadcasting events to Redis."""

    @pytest.mark.asyncio
    async def test_publish_json(self):
        """Test events are published as JSON on the channel."""
        redis = MagicMock()
        redis.publish = AsyncMock()
        broadcaster = RedisEventBroadcaster(redis, "mdb_changer_events")

        await broadcaster.handle_event({"type": "coin", "coinType": 2})

        channel, payload = redis.publish.await_args.args
        assert channel == "mdb_changer_events"
        assert json.loads(payload) == {"type": "coin", "coinType": 2}

    @pytest.mark.asyncio
    async def test_redis_error_swallowed(self):
        """Test Redis failures do not propagate."""
        redis = MagicMock()
        redis.publish = AsyncMock(side_effect=RedisConnectionError("down"))
        broadcaster = RedisEventBroadcaster(redis, "mdb_changer_events")

        await broadcaster.handle_event({"type": "coin"})


class TestWebSocket:
    """Tests for WebSocket forwarding."""

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        """Test an unreachable server is reported, not raised."""
        with patch.object(websockets, "connect", MagicMock(side_effect=OSError("refused"))):
            assert await send_to_ws("coin", {"coinType": 2}) is False

    @pytest.mark.asyncio
    async def test_forwarder(self):
        """Test the forwarder sends the event type and data."""
        forwarder = WebSocketForwarder("ws://example/ws")

        with patch.object(ws_module, "send_to_ws", AsyncMock(return_value=True)) as sender:
            await forwarder.handle_event({"type": "coin", "coinType": 2, "value": 10})

        sender.assert_awaited_once_with(
            "coin",
            {"coinType": 2, "value": 10},
            ws_url="ws://example/ws",
        )
