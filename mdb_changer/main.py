"""
MDB Coin Changer Service - Main entry point.

Initializes the coin changer, then serves JSON commands received on a
Redis pub/sub channel and publishes the responses on the response
channel.
"""

import asyncio
import json
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from mdb_changer.application.api_facade import CoinChangerFacade
from mdb_changer.application.command_handler import coin_changer_commands
from mdb_changer.infrastructure.settings import get_settings
from mdb_changer.loggers import logger


async def handle_message(
    redis: Redis,
    api: CoinChangerFacade,
    raw_data: Any,
    response_channel: str,
) -> None:
    """
    Run one command message and publish its response.

    Unparseable messages are logged and dropped; a failed publish is
    logged and does not stop the listener.
    """
    try:
        command = json.loads(raw_data)
    except (TypeError, json.JSONDecodeError) as e:
        logger.error(f"Command parsing error: {e}")
        return
    if not isinstance(command, dict):
        logger.error(f"Command must be a JSON object, got: {raw_data!r}")
        return

    logger.info(f"Received command: {command}")
    response = await coin_changer_commands(command, api)

    try:
        await redis.publish(response_channel, json.dumps(response))
    except RedisError as e:
        logger.error(f"Failed to publish response to {response_channel}: {e}")
        return
    logger.info(f"Response sent to {response_channel}: {response}")


async def listen_to_redis(redis: Redis, api: CoinChangerFacade) -> None:
    """
    Initialize the device and serve commands from Redis pub/sub.

    The listener keeps serving when initialization fails, so that
    init_device can be retried by command.
    """
    services = get_settings().services

    result = await api.init_device()
    if not result["success"]:
        logger.error(f"Coin changer initialization failed: {result['message']}")

    pubsub = redis.pubsub()
    await pubsub.subscribe(services.command_channel)
    logger.info(f"Listening for commands on channel: {services.command_channel}")

    async for message in pubsub.listen():
        if message.get("type") != "message" or message.get("data") == "ping":
            continue
        await handle_message(redis, api, message["data"], services.response_channel)


async def main() -> None:
    """Connect to Redis, build the facade and serve commands until stopped."""
    settings = get_settings()

    redis = Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        decode_responses=settings.redis.decode_responses,
    )
    api = CoinChangerFacade(redis=redis)

    try:
        await listen_to_redis(redis, api)
    finally:
        await api.shutdown()
        await redis.aclose()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application stopped by user")


if __name__ == "__main__":
    run()
