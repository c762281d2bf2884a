"""
Event system for the coin changer.

Coin events from the poll loop and amount request transitions are put
on an asyncio queue by the publisher and fanned out to observers by the
consumer task. Observer failures are logged and never reach the
publisher or the other observers.
"""

import asyncio
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Optional, Union

from mdb_changer.loggers import logger


WILDCARD = "*"

Handler = Callable[[dict[str, Any]], Any]


class EventType(str, Enum):
    """Event types; values are the "type" field seen by observers."""

    COIN = "coin"
    DISPENSE = "dispense"
    CASHBOX = "cashbox"
    RETURNED = "returned"
    AMOUNT_STATE = "amount_state"


def event_key(event_type: Union[EventType, str]) -> str:
    """Normalize an event type to its wire name."""
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)


class EventPublisher:
    """
    Puts events on the shared queue.

    Attributes:
        event_queue: Queue read by the EventConsumer.
    """

    def __init__(self, event_queue: asyncio.Queue) -> None:
        self.event_queue = event_queue

    async def publish(self, event_type: Union[EventType, str], **data: Any) -> None:
        """
        Publish an event as {"type": <wire name>, **data}.

        Args:
            event_type: Event type.
            **data: Event fields.
        """
        await self.event_queue.put({"type": event_key(event_type), **data})


class EventConsumer:
    """
    Dispatches queued events to registered handlers.

    Handlers may be plain functions or coroutine functions and are
    looked up by event type; handlers registered for "*" receive every
    event. All handlers of one event run concurrently.
    """

    def __init__(self, event_queue: asyncio.Queue) -> None:
        self.event_queue = event_queue
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)
        self._consume_task: Optional[asyncio.Task] = None

    @property
    def is_consuming(self) -> bool:
        return self._consume_task is not None and not self._consume_task.done()

    def register_handler(self, event_type: Union[EventType, str], handler: Handler) -> None:
        """
        Register a handler.

        Args:
            event_type: Event type, or "*" for all events.
            handler: Callable taking the event dictionary.
        """
        self._handlers[event_key(event_type)].append(handler)

    def unregister_handler(self, event_type: Union[EventType, str], handler: Handler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_key(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: str) -> list[Handler]:
        """Get the handlers an event of this type is dispatched to."""
        return [*self._handlers.get(event_type, ()), *self._handlers.get(WILDCARD, ())]

    @staticmethod
    async def _invoke(handler: Handler, event: dict[str, Any]) -> None:
        result = handler(event)
        if asyncio.iscoroutine(result):
            await result

    async def _process_event(self, event: dict[str, Any]) -> None:
        """Run every handler of the event and log the ones that fail."""
        event_type = event.get("type", "")
        handlers = self.handlers_for(event_type)
        if not handlers:
            return

        results = await asyncio.gather(
            *(self._invoke(handler, event) for handler in handlers),
            return_exceptions=True,
        )
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"Event handler {handler!r} failed on '{event_type}': {result}")

    async def _consume_loop(self) -> None:
        while True:
            event = await self.event_queue.get()
            try:
                await self._process_event(event)
            finally:
                self.event_queue.task_done()

    async def start_consuming(self) -> None:
        """Start the consume task (no-op if already running)."""
        if self.is_consuming:
            return
        self._consume_task = asyncio.create_task(self._consume_loop())

    async def stop_consuming(self) -> None:
        """Cancel the consume task; queued events stay in the queue."""
        task, self._consume_task = self._consume_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
