"""
Redis event broadcaster.

Publishes coin changer events as JSON on a Redis pub/sub channel so
that other services (UI, accounting) can follow tube and amount changes.
"""

from __future__ import annotations

import json
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from mdb_changer.loggers import logger


class RedisEventBroadcaster:
    """
    Event handler forwarding every event to a Redis channel.

    Delivery is best effort: Redis errors are logged and dropped.
    """

    def __init__(self, redis: Redis, channel: str) -> None:
        """
        Initialize the broadcaster.

        Args:
            redis: Redis client instance.
            channel: Pub/sub channel to publish on.
        """
        self._redis = redis
        self._channel = channel

    @property
    def channel(self) -> str:
        return self._channel

    async def handle_event(self, event: dict[str, Any]) -> None:
        """Publish one event as JSON."""
        try:
            await self._redis.publish(self._channel, json.dumps(event))
        except RedisError as e:
            logger.warning(f"Failed to broadcast {event.get('type')} event: {e}")
