"""
WebSocket forwarding of coin changer events.

Published events are relayed to the frontend WebSocket server as
{"event": <type>, "data": {...}} messages, one connection per message.
"""

import asyncio
import json
from typing import Any, Final, Optional

import websockets
from websockets.exceptions import WebSocketException

from mdb_changer.configs import WS_URL
from mdb_changer.loggers import logger


WS_OPEN_TIMEOUT: Final[float] = 2.0


def build_message(event: str, data: Optional[dict[str, Any]] = None) -> str:
    """Serialize an event for the frontend."""
    return json.dumps({"event": event, "data": data or {}})


async def send_to_ws(
    event: str,
    data: Optional[dict[str, Any]] = None,
    ws_url: str = WS_URL,
) -> bool:
    """
    Send one event to the WebSocket server.

    Args:
        event: Event type, e.g. "coin" or "amount_state".
        data: Event fields without the type.
        ws_url: WebSocket server URL.

    Returns:
        True if the message was sent, False if the server could not be reached.

    Example:
        await send_to_ws("coin", {"coinType": 2, "value": 10, "newCount": 14})
    """
    try:
        async with websockets.connect(ws_url, open_timeout=WS_OPEN_TIMEOUT) as ws:
            await ws.send(build_message(event, data))
    except (WebSocketException, OSError, asyncio.TimeoutError) as e:
        logger.warning(f"WebSocket send of '{event}' to {ws_url} failed: {e}")
        return False

    logger.debug(f"WebSocket message sent: {event}")
    return True


class WebSocketForwarder:
    """Event consumer handler relaying every event to the WebSocket server."""

    def __init__(self, ws_url: str = WS_URL) -> None:
        self._ws_url = ws_url

    @property
    def ws_url(self) -> str:
        return self._ws_url

    async def handle_event(self, event: dict[str, Any]) -> None:
        data = {k: v for k, v in event.items() if k != "type"}
        await send_to_ws(event.get("type", "unknown"), data, ws_url=self._ws_url)
